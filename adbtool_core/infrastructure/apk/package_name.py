"""
Package name extraction from APK files.

Combines the ZIP reader and the binary XML reader. Extraction is advisory
(it only drives the pre-uninstall step of an install), so every failure is
reported through the shared error service and collapsed to None.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..shared.error_handling import ErrorSeverity, log_and_continue
from .binary_xml import find_manifest_package
from .results import ExtractionResult, ExtractionStatus
from .zip_reader import ZipCentralDirectoryReader

MANIFEST_ENTRY = "AndroidManifest.xml"
COMPONENT = "apk.extractor"


class PackageNameExtractor:
    """Extracts the `package` attribute of an APK's compiled manifest."""

    def __init__(self, manifest_entry: str = MANIFEST_ENTRY):
        self.manifest_entry = manifest_entry
        self.logger = logging.getLogger(COMPONENT)

    def inspect(self, apk_bytes: bytes) -> ExtractionResult[str]:
        """Run both readers and keep the reason when no name is available."""
        manifest = ZipCentralDirectoryReader(apk_bytes).read_entry(self.manifest_entry)
        if not manifest.ok:
            return manifest
        return find_manifest_package(manifest.value)

    def extract(self, apk_bytes: bytes) -> Optional[str]:
        result = self.inspect(apk_bytes)
        if result.ok:
            self.logger.debug(f"Extracted package name: {result.value}")
            return result.value

        severity = ErrorSeverity.DEBUG if result.status == ExtractionStatus.ABSENT else ErrorSeverity.WARNING
        log_and_continue(
            f"Package name unavailable ({result.status.value}): {result.reason}",
            component=COMPONENT,
            severity=severity
        )
        return None

    def extract_from_path(self, apk_path: Union[str, Path]) -> Optional[str]:
        """Read an APK from disk; unreadable files count as unavailable."""
        try:
            data = Path(apk_path).read_bytes()
        except OSError as e:
            log_and_continue(
                f"Cannot read APK: {e}",
                component=COMPONENT,
                severity=ErrorSeverity.WARNING,
                path=str(apk_path)
            )
            return None
        return self.extract(data)


_default_extractor = PackageNameExtractor()


def extract_package_name(apk_bytes: bytes) -> Optional[str]:
    """Return the package name declared by an APK, or None."""
    return _default_extractor.extract(apk_bytes)


def extract_package_name_from_path(apk_path: Union[str, Path]) -> Optional[str]:
    """Return the package name declared by the APK at `apk_path`, or None."""
    return _default_extractor.extract_from_path(apk_path)
