"""
Minimal ZIP central-directory reader.

Locates one named entry in an in-memory archive and returns its bytes,
inflating deflated entries. Only the structures needed for that are decoded:
the End-Of-Central-Directory record, central-directory file headers and the
local file header of the matched entry.
"""

import logging
import zlib
from dataclasses import dataclass
from typing import Iterator, Optional

from .errors import ArchiveFormatError, UnsupportedCompressionError
from .results import ExtractionResult
from .structs import read_u16, read_u32

EOCD_SIGNATURE = 0x06054b50
CENTRAL_DIRECTORY_SIGNATURE = 0x02014b50
LOCAL_HEADER_SIGNATURE = 0x04034b50

EOCD_MIN_SIZE = 22
CENTRAL_DIRECTORY_RECORD_SIZE = 46
LOCAL_HEADER_SIZE = 30

METHOD_STORED = 0
METHOD_DEFLATE = 8


@dataclass(frozen=True)
class ZipEntryLocation:
    """Where an entry lives, as recorded in the central directory."""
    raw_name: bytes
    directory_offset: int
    compressed_size: int
    compression_method: int
    local_header_offset: int

    @property
    def name(self) -> str:
        return self.raw_name.decode('utf-8', errors='replace')


class ZipCentralDirectoryReader:
    """
    Reads single entries out of a ZIP archive held in memory.

    Instances hold no state beyond the buffer and can be reused for several
    lookups against the same archive.
    """

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.logger = logging.getLogger("apk.zip")

    def find_eocd(self) -> int:
        """
        Scan backwards for the End-Of-Central-Directory record.

        Every position from `len - 22` down to 0 is checked, since an archive
        comment may follow the record.
        """
        buf = self.data
        signature = EOCD_SIGNATURE.to_bytes(4, 'little')
        for position in range(len(buf) - EOCD_MIN_SIZE, -1, -1):
            if buf[position:position + 4] == signature:
                return position
        raise ArchiveFormatError("End of central directory signature not found")

    def iter_entries(self) -> Iterator[ZipEntryLocation]:
        """Yield central-directory entries until the count or a bad record is reached."""
        buf = self.data
        eocd = self.find_eocd()
        entry_count = read_u16(buf, eocd + 10, ArchiveFormatError)
        position = read_u32(buf, eocd + 16, ArchiveFormatError)

        for _ in range(entry_count):
            if position + 4 > len(buf) or read_u32(buf, position, ArchiveFormatError) != CENTRAL_DIRECTORY_SIGNATURE:
                self.logger.debug(f"Central directory walk stopped at offset {position}")
                return

            compressed_size = read_u32(buf, position + 20, ArchiveFormatError)
            method = read_u16(buf, position + 10, ArchiveFormatError)
            name_length = read_u16(buf, position + 28, ArchiveFormatError)
            extra_length = read_u16(buf, position + 30, ArchiveFormatError)
            comment_length = read_u16(buf, position + 32, ArchiveFormatError)
            local_offset = read_u32(buf, position + 42, ArchiveFormatError)

            name_start = position + CENTRAL_DIRECTORY_RECORD_SIZE
            if name_start + name_length > len(buf):
                raise ArchiveFormatError("Central directory entry name truncated", position)
            yield ZipEntryLocation(
                raw_name=buf[name_start:name_start + name_length],
                directory_offset=position,
                compressed_size=compressed_size,
                compression_method=method,
                local_header_offset=local_offset
            )

            position = name_start + name_length + extra_length + comment_length

    def locate(self, entry_name: str) -> Optional[ZipEntryLocation]:
        """Find the central-directory record whose name matches byte-for-byte."""
        wanted = entry_name.encode('utf-8')
        for entry in self.iter_entries():
            if entry.raw_name == wanted:
                return entry
        return None

    def read_entry(self, entry_name: str) -> ExtractionResult[bytes]:
        """
        Read and decompress an entry.

        Returns:
            FOUND with the bytes, ABSENT when no record matches, MALFORMED on
            any structural inconsistency, UNSUPPORTED for unknown compression.
        """
        try:
            entry = self.locate(entry_name)
            if entry is None:
                return ExtractionResult.absent(f"No entry named '{entry_name}'")
            return ExtractionResult.found(self._read_data(entry))
        except UnsupportedCompressionError as e:
            return ExtractionResult.unsupported(str(e))
        except ArchiveFormatError as e:
            return ExtractionResult.malformed(str(e))

    def _read_data(self, entry: ZipEntryLocation) -> bytes:
        buf = self.data
        header = entry.local_header_offset
        if read_u32(buf, header, ArchiveFormatError) != LOCAL_HEADER_SIGNATURE:
            raise ArchiveFormatError("Local file header signature mismatch", header)

        method = read_u16(buf, header + 8, ArchiveFormatError)
        name_length = read_u16(buf, header + 26, ArchiveFormatError)
        extra_length = read_u16(buf, header + 28, ArchiveFormatError)
        data_start = header + LOCAL_HEADER_SIZE + name_length + extra_length
        data_end = data_start + entry.compressed_size
        if data_end > len(buf):
            raise ArchiveFormatError(f"Entry data for '{entry.name}' runs past end of archive", data_start)

        raw = buf[data_start:data_end]
        if method == METHOD_STORED:
            return raw
        if method == METHOD_DEFLATE:
            try:
                return zlib.decompress(raw, -zlib.MAX_WBITS)
            except zlib.error as e:
                raise ArchiveFormatError(f"Corrupt deflate stream for '{entry.name}': {e}", data_start)
        raise UnsupportedCompressionError(method, entry.name)


def read_zip_entry(data: bytes, entry_name: str) -> Optional[bytes]:
    """Return the decompressed bytes of `entry_name`, or None if it cannot be read."""
    return ZipCentralDirectoryReader(data).read_entry(entry_name).or_none()
