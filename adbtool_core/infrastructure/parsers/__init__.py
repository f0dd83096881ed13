"""
Text parsers for adb output.
"""

from .logcat_parser import parse_logcat_line, to_event

__all__ = [
    'parse_logcat_line',
    'to_event'
]
