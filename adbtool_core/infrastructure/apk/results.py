"""
Result type shared by the APK readers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar('T')


class ExtractionStatus(Enum):
    """Outcome of an extraction attempt."""
    FOUND = "found"
    ABSENT = "absent"            # well-formed input, value not present
    MALFORMED = "malformed"      # structural problem in the input
    UNSUPPORTED = "unsupported"  # well-formed but uses an encoding we do not read


@dataclass(frozen=True)
class ExtractionResult(Generic[T]):
    """Value plus the reason it is (or is not) available."""
    status: ExtractionStatus
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def found(cls, value: T) -> 'ExtractionResult[T]':
        return cls(ExtractionStatus.FOUND, value)

    @classmethod
    def absent(cls, reason: str) -> 'ExtractionResult[T]':
        return cls(ExtractionStatus.ABSENT, reason=reason)

    @classmethod
    def malformed(cls, reason: str) -> 'ExtractionResult[T]':
        return cls(ExtractionStatus.MALFORMED, reason=reason)

    @classmethod
    def unsupported(cls, reason: str) -> 'ExtractionResult[T]':
        return cls(ExtractionStatus.UNSUPPORTED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == ExtractionStatus.FOUND

    def or_none(self) -> Optional[T]:
        """Collapse to the optional value exposed at the public boundary."""
        return self.value if self.ok else None
