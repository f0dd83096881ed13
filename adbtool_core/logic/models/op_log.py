"""
Operation history domain models.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Any, Optional


# 'upload' and 'download' are what the desktop app records for push and pull
OP_TYPES = {'install', 'uninstall', 'push', 'pull', 'upload', 'download', 'screenshot'}


def now_timestamp() -> str:
    """Timestamp format used by operation history entries."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class OpLogEntry:
    """A completed device operation, appended to the history once."""
    op_type: str
    device: str
    detail: str
    success: bool
    timestamp: str = field(default_factory=now_timestamp)
    error_message: Optional[str] = None
    command: Optional[str] = None
    raw_output: Optional[str] = None

    def __post_init__(self):
        """Validate entry."""
        if self.op_type not in OP_TYPES:
            raise ValueError(f"Unknown operation type: {self.op_type}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OpLogEntry':
        """Create entry from dictionary."""
        return cls(
            op_type=data['op_type'],
            device=data.get('device', ''),
            detail=data.get('detail', ''),
            success=bool(data.get('success', False)),
            timestamp=data.get('timestamp') or now_timestamp(),
            error_message=data.get('error_message'),
            command=data.get('command'),
            raw_output=data.get('raw_output')
        )


@dataclass
class InstallResult:
    """Outcome of an `adb install` invocation."""
    success: bool
    raw_output: str
    error_code: Optional[str] = None
    package_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
