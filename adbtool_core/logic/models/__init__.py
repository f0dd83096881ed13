"""
Domain models for the adb tool core.

These models represent the domain and are independent of any external concerns.
"""

from .logcat_line import LogcatLine, VALID_LEVELS
from .op_log import OpLogEntry, InstallResult, now_timestamp
from .configuration import ToolConfig, AdbConfig, LogcatConfig, OpLogConfig, InstallConfig

__all__ = [
    'LogcatLine',
    'VALID_LEVELS',
    'OpLogEntry',
    'InstallResult',
    'now_timestamp',
    'ToolConfig',
    'AdbConfig',
    'LogcatConfig',
    'OpLogConfig',
    'InstallConfig'
]
