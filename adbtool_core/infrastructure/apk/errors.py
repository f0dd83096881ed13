"""
Exceptions raised while decoding APK containers and compiled manifests.

These never cross the public extraction boundary: callers only ever see a
missing package name.
"""

from typing import Optional


class ApkFormatError(Exception):
    """Base class for structural problems in an APK or its manifest."""

    error_type = "format"

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset
        if offset is not None:
            self.message = f"{message} (offset: {offset})"
        else:
            self.message = message

    def __str__(self) -> str:
        return self.message


class ArchiveFormatError(ApkFormatError):
    """Bad ZIP signature, truncated record or out-of-range offset."""

    error_type = "archive"


class UnsupportedCompressionError(ApkFormatError):
    """ZIP entry compressed with a method other than stored or deflate."""

    error_type = "compression"

    def __init__(self, method: int, entry_name: str):
        super().__init__(f"Unsupported compression method {method} for entry '{entry_name}'")
        self.method = method
        self.entry_name = entry_name


class ManifestFormatError(ApkFormatError):
    """Binary XML header or chunk layout that cannot be decoded."""

    error_type = "manifest"
