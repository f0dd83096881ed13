"""
Logcat streaming infrastructure.
"""

from .stream_supervisor import (
    LogcatStreamSupervisor,
    ActiveLogStream,
    LogcatSubscription,
    StreamState,
    LogcatStreamError,
    AlreadyStreamingError,
    NotStreamingError,
    StreamSpawnError
)
from .log_directory import ensure_log_directory, build_log_filename, unique_log_path, cleanup_old_logs

__all__ = [
    'LogcatStreamSupervisor',
    'ActiveLogStream',
    'LogcatSubscription',
    'StreamState',
    'LogcatStreamError',
    'AlreadyStreamingError',
    'NotStreamingError',
    'StreamSpawnError',
    'ensure_log_directory',
    'build_log_filename',
    'unique_log_path',
    'cleanup_old_logs'
]
