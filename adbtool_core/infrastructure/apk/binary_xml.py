"""
Android binary XML reader, limited to `<manifest package="...">`.

The compiled AndroidManifest.xml produced by aapt is a sequence of chunks:
an XML container header, a string pool, then tree chunks (namespaces, start
and end elements, resource maps). Only the string pool and START_ELEMENT
chunks are decoded; every other chunk is stepped over by its declared size.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, List

from .errors import ApkFormatError, ManifestFormatError
from .results import ExtractionResult
from .structs import read_u8, read_u16, read_u32

RES_XML_TYPE_MAGIC = 0x00080003
RES_STRING_POOL_TYPE = 0x0001
RES_XML_START_ELEMENT_TYPE = 0x0102

STRING_POOL_OFFSET = 8
STRING_POOL_HEADER_SIZE = 28
UTF8_FLAG = 0x100

CHUNK_HEADER_SIZE = 8
START_ELEMENT_MIN_SIZE = 36
ATTRIBUTE_SIZE = 20
TYPE_STRING = 0x03

MANIFEST_ELEMENT = "manifest"
PACKAGE_ATTRIBUTE = "package"

logger = logging.getLogger("apk.manifest")


@dataclass(frozen=True)
class StringPool:
    """Decoded strings of a binary XML string pool, addressed by index."""
    strings: Tuple[str, ...]
    is_utf8: bool

    def __len__(self) -> int:
        return len(self.strings)

    def get(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.strings):
            return self.strings[index]
        return None

    @classmethod
    def parse(cls, buf: bytes, chunk_start: int) -> 'StringPool':
        """
        Decode the pool whose chunk header starts at `chunk_start`.

        Strings whose offset lies outside the buffer decode as "" and string
        bodies are clipped at the buffer end.
        """
        count = read_u32(buf, chunk_start + 8, ManifestFormatError)
        flags = read_u32(buf, chunk_start + 16, ManifestFormatError)
        strings_start = read_u32(buf, chunk_start + 20, ManifestFormatError)
        is_utf8 = bool(flags & UTF8_FLAG)
        offsets_base = chunk_start + STRING_POOL_HEADER_SIZE
        data_base = chunk_start + strings_start

        strings: List[str] = []
        for i in range(count):
            offset = data_base + read_u32(buf, offsets_base + i * 4, ManifestFormatError)
            if offset >= len(buf):
                strings.append("")
            elif is_utf8:
                strings.append(_decode_utf8_string(buf, offset))
            else:
                strings.append(_decode_utf16_string(buf, offset))

        return cls(strings=tuple(strings), is_utf8=is_utf8)


def _read_utf8_length(buf: bytes, offset: int) -> Tuple[int, int]:
    """Return (length, bytes consumed) for a 1- or 2-byte UTF-8 pool length."""
    first = read_u8(buf, offset, ManifestFormatError)
    if first & 0x80:
        second = read_u8(buf, offset + 1, ManifestFormatError)
        return ((first & 0x7f) << 8) | second, 2
    return first, 1


def _decode_utf8_string(buf: bytes, offset: int) -> str:
    # Character count first, then byte count; only the byte count is needed.
    try:
        _, consumed = _read_utf8_length(buf, offset)
        byte_count, consumed_bytes = _read_utf8_length(buf, offset + consumed)
    except ManifestFormatError:
        return ""
    start = offset + consumed + consumed_bytes
    return buf[start:start + byte_count].decode('utf-8', errors='replace')


def _decode_utf16_string(buf: bytes, offset: int) -> str:
    try:
        char_count = read_u16(buf, offset, ManifestFormatError)
    except ManifestFormatError:
        return ""
    start = offset + 2
    available = max(0, (len(buf) - start) // 2)
    units = min(char_count, available)
    return buf[start:start + units * 2].decode('utf-16-le', errors='replace')


def _check_header(buf: bytes) -> None:
    if len(buf) < CHUNK_HEADER_SIZE or read_u32(buf, 0, ManifestFormatError) != RES_XML_TYPE_MAGIC:
        raise ManifestFormatError("Not a binary XML document")
    if read_u16(buf, STRING_POOL_OFFSET, ManifestFormatError) != RES_STRING_POOL_TYPE:
        raise ManifestFormatError("String pool does not follow the XML header", STRING_POOL_OFFSET)


def _read_package_attribute(buf: bytes, element: int, pool: StringPool) -> Optional[str]:
    """Scan the attributes of the START_ELEMENT at `element` for `package`."""
    attribute_count = read_u16(buf, element + 28, ManifestFormatError)
    for index in range(attribute_count):
        attribute = element + START_ELEMENT_MIN_SIZE + index * ATTRIBUTE_SIZE
        if attribute + ATTRIBUTE_SIZE > len(buf):
            break

        if pool.get(read_u32(buf, attribute + 4)) != PACKAGE_ATTRIBUTE:
            continue

        raw_value = pool.get(read_u32(buf, attribute + 8))
        if raw_value is not None:
            return raw_value
        if buf[attribute + 15] == TYPE_STRING:
            typed_value = pool.get(read_u32(buf, attribute + 16))
            if typed_value is not None:
                return typed_value
    return None


def find_manifest_package(buf: bytes) -> ExtractionResult[str]:
    """
    Walk the chunk stream for the root `<manifest>` element.

    The walk keeps an explicit cursor and never descends into chunks it does
    not inspect. A zero-sized chunk ends the walk.
    """
    try:
        _check_header(buf)
        pool_size = read_u32(buf, STRING_POOL_OFFSET + 4, ManifestFormatError)
        pool = StringPool.parse(buf, STRING_POOL_OFFSET)

        cursor = STRING_POOL_OFFSET + pool_size
        while cursor + CHUNK_HEADER_SIZE <= len(buf):
            chunk_type = read_u16(buf, cursor)
            chunk_size = read_u32(buf, cursor + 4)
            if chunk_size == 0:
                logger.debug(f"Zero-sized chunk at offset {cursor}, stopping walk")
                break

            if chunk_type == RES_XML_START_ELEMENT_TYPE and cursor + START_ELEMENT_MIN_SIZE <= len(buf):
                if pool.get(read_u32(buf, cursor + 20)) == MANIFEST_ELEMENT:
                    package = _read_package_attribute(buf, cursor, pool)
                    if package is None:
                        return ExtractionResult.absent("Manifest element has no package attribute")
                    return ExtractionResult.found(package)

            cursor += chunk_size
    except ApkFormatError as e:
        return ExtractionResult.malformed(str(e))

    return ExtractionResult.absent("No manifest element found")


def parse_package_name(buf: bytes) -> Optional[str]:
    """Return the manifest package name, or None."""
    return find_manifest_package(buf).or_none()
