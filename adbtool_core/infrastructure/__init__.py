"""
Infrastructure layer for the adb tool core.

This module contains technical concerns like binary parsing, log streaming, storage and device access.
"""

from .apk import extract_package_name, extract_package_name_from_path
from .parsers import parse_logcat_line
from .logcat import LogcatStreamSupervisor, AlreadyStreamingError, NotStreamingError
from .device import AdbLocator, AdbCommandRunner, AdbDevice
from .storage import OpLogStore

__all__ = [
    'extract_package_name',
    'extract_package_name_from_path',
    'parse_logcat_line',
    'LogcatStreamSupervisor',
    'AlreadyStreamingError',
    'NotStreamingError',
    'AdbLocator',
    'AdbCommandRunner',
    'AdbDevice',
    'OpLogStore'
]
