"""
Bounds-checked little-endian integer reads.
"""

import struct
from typing import Type

from .errors import ApkFormatError

_U16 = struct.Struct('<H')
_U32 = struct.Struct('<I')


def read_u8(buf: bytes, offset: int, error: Type[ApkFormatError] = ApkFormatError) -> int:
    if offset < 0 or offset >= len(buf):
        raise error("Read past end of buffer", offset)
    return buf[offset]


def read_u16(buf: bytes, offset: int, error: Type[ApkFormatError] = ApkFormatError) -> int:
    if offset < 0 or offset + 2 > len(buf):
        raise error("Read past end of buffer", offset)
    return _U16.unpack_from(buf, offset)[0]


def read_u32(buf: bytes, offset: int, error: Type[ApkFormatError] = ApkFormatError) -> int:
    if offset < 0 or offset + 4 > len(buf):
        raise error("Read past end of buffer", offset)
    return _U32.unpack_from(buf, offset)[0]
