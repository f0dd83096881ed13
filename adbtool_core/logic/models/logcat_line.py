"""
Logcat line domain model.
"""

from dataclasses import dataclass, asdict
from typing import Dict


VALID_LEVELS = frozenset({"V", "D", "I", "W", "E", "F", "S"})


@dataclass(frozen=True)
class LogcatLine:
    """
    One line of `adb logcat -v threadtime` output.

    Every field is a string. A line that could not be tokenized is still
    represented, with only `message` and `raw` populated.
    """
    timestamp: str
    pid: str
    tid: str
    level: str
    tag: str
    message: str
    raw: str

    @classmethod
    def raw_only(cls, line: str) -> 'LogcatLine':
        """Build a best-effort record for a line the tokenizer rejected."""
        return cls(
            timestamp="",
            pid="",
            tid="",
            level="",
            tag="",
            message=line,
            raw=line
        )

    @property
    def is_structured(self) -> bool:
        return bool(self.timestamp)

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON relay."""
        return asdict(self)
