"""
Configuration domain models.

Contains the data structures for adb access, logcat capture and operation history settings.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional
import json
from pathlib import Path

import yaml


def _default_app_directory() -> Path:
    return Path.home() / "AdbTool"


@dataclass
class AdbConfig:
    """Configuration for locating and invoking the adb binary."""
    path: Optional[str] = None
    command_timeout_seconds: int = 60

    def __post_init__(self):
        """Validate adb configuration."""
        if self.command_timeout_seconds <= 0:
            raise ValueError("command_timeout_seconds must be positive")


@dataclass
class LogcatConfig:
    """Configuration for logcat streaming and on-disk capture."""
    log_directory: Path = field(default_factory=lambda: _default_app_directory() / "logs")
    format: str = "threadtime"
    retention_days: int = 7
    stderr_prefix: str = "[STDERR] "

    def __post_init__(self):
        """Convert string paths and validate logcat configuration."""
        if isinstance(self.log_directory, str):
            self.log_directory = Path(self.log_directory).expanduser()

        if self.retention_days < 0:
            raise ValueError("retention_days cannot be negative")

        if not self.format:
            raise ValueError("logcat format cannot be empty")


@dataclass
class OpLogConfig:
    """Configuration for the operation history file."""
    path: Path = field(default_factory=lambda: _default_app_directory() / "op_history.json")

    def __post_init__(self):
        if isinstance(self.path, str):
            self.path = Path(self.path).expanduser()


@dataclass
class InstallConfig:
    """Configuration for the install flow."""
    uninstall_before_install: bool = True


@dataclass
class ToolConfig:
    """
    Main configuration for the adb tool core.

    This centralizes all configuration instead of having paths and limits scattered throughout the code.
    """

    adb: AdbConfig = field(default_factory=AdbConfig)
    logcat: LogcatConfig = field(default_factory=LogcatConfig)
    op_log: OpLogConfig = field(default_factory=OpLogConfig)
    install: InstallConfig = field(default_factory=InstallConfig)

    @classmethod
    def from_file(cls, file_path: str) -> 'ToolConfig':
        """Load configuration from a file (JSON or YAML)."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ['.yml', '.yaml']:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ToolConfig':
        """Create configuration from dictionary."""
        adb_data = data.get('adb') or {}
        adb = AdbConfig(
            path=adb_data.get('path'),
            command_timeout_seconds=adb_data.get('command_timeout_seconds', 60)
        )

        logcat_data = data.get('logcat') or {}
        logcat = LogcatConfig(
            format=logcat_data.get('format', 'threadtime'),
            retention_days=logcat_data.get('retention_days', 7),
            stderr_prefix=logcat_data.get('stderr_prefix', '[STDERR] ')
        )
        if logcat_data.get('log_directory'):
            logcat.log_directory = Path(logcat_data['log_directory']).expanduser()

        op_log = OpLogConfig()
        op_log_data = data.get('op_log') or {}
        if op_log_data.get('path'):
            op_log.path = Path(op_log_data['path']).expanduser()

        install_data = data.get('install') or {}
        install = InstallConfig(
            uninstall_before_install=install_data.get('uninstall_before_install', True)
        )

        return cls(adb=adb, logcat=logcat, op_log=op_log, install=install)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'adb': {
                'path': self.adb.path,
                'command_timeout_seconds': self.adb.command_timeout_seconds
            },
            'logcat': {
                'log_directory': str(self.logcat.log_directory),
                'format': self.logcat.format,
                'retention_days': self.logcat.retention_days,
                'stderr_prefix': self.logcat.stderr_prefix
            },
            'op_log': {
                'path': str(self.op_log.path)
            },
            'install': {
                'uninstall_before_install': self.install.uninstall_before_install
            }
        }

    def save_to_file(self, file_path: str):
        """Save configuration to a file."""
        path = Path(file_path)

        with open(path, 'w', encoding='utf-8') as f:
            if path.suffix.lower() in ['.yml', '.yaml']:
                yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)
            else:
                json.dump(self.to_dict(), f, indent=2)
