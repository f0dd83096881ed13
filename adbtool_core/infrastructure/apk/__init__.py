"""
APK inspection infrastructure.

Reads the package name out of an APK without any third-party archive library.
"""

from .errors import ApkFormatError, ArchiveFormatError, UnsupportedCompressionError, ManifestFormatError
from .results import ExtractionResult, ExtractionStatus
from .zip_reader import ZipCentralDirectoryReader, ZipEntryLocation, read_zip_entry
from .binary_xml import StringPool, find_manifest_package, parse_package_name
from .package_name import PackageNameExtractor, extract_package_name, extract_package_name_from_path

__all__ = [
    'ApkFormatError',
    'ArchiveFormatError',
    'UnsupportedCompressionError',
    'ManifestFormatError',
    'ExtractionResult',
    'ExtractionStatus',
    'ZipCentralDirectoryReader',
    'ZipEntryLocation',
    'read_zip_entry',
    'StringPool',
    'find_manifest_package',
    'parse_package_name',
    'PackageNameExtractor',
    'extract_package_name',
    'extract_package_name_from_path'
]
