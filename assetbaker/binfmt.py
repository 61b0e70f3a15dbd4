"""Self-describing little-endian binary container for the runtime catalog.

Layout: magic ``ABKD``, u16 format version, then exactly one tagged value.

    tag  payload
    0    none
    1    false
    2    true
    3    int     i64
    4    float   f64
    5    str     u32 byte length + UTF-8
    6    bytes   u32 length + raw bytes
    7    list    u32 count + that many values
    8    map     u32 count + that many key/value pairs

Lists and tuples both encode as lists; maps keep insertion order.
"""

from __future__ import annotations

import struct
from typing import Any, List

MAGIC = b"ABKD"
VERSION = 1

TAG_NONE = 0
TAG_FALSE = 1
TAG_TRUE = 2
TAG_INT = 3
TAG_FLOAT = 4
TAG_STR = 5
TAG_BYTES = 6
TAG_LIST = 7
TAG_MAP = 8

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


class FormatError(ValueError):
    """The data is not a valid container."""


class Writer:
    def __init__(self) -> None:
        self._parts: List[bytes] = []

    def getvalue(self) -> bytes:
        return b"".join(self._parts)

    def write_raw(self, data: bytes) -> None:
        self._parts.append(data)

    def write_u8(self, value: int) -> None:
        self._parts.append(struct.pack("<B", value))

    def write_u16(self, value: int) -> None:
        self._parts.append(struct.pack("<H", value))

    def write_u32(self, value: int) -> None:
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"Length {value} does not fit in uint32")
        self._parts.append(struct.pack("<I", value))

    def write_value(self, value: Any) -> None:
        if value is None:
            self.write_u8(TAG_NONE)
        elif value is False:
            self.write_u8(TAG_FALSE)
        elif value is True:
            self.write_u8(TAG_TRUE)
        elif isinstance(value, int):
            if not _I64_MIN <= value <= _I64_MAX:
                raise ValueError(f"Integer {value} does not fit in int64")
            self.write_u8(TAG_INT)
            self._parts.append(struct.pack("<q", value))
        elif isinstance(value, float):
            self.write_u8(TAG_FLOAT)
            self._parts.append(struct.pack("<d", value))
        elif isinstance(value, str):
            raw = value.encode("utf-8")
            self.write_u8(TAG_STR)
            self.write_u32(len(raw))
            self._parts.append(raw)
        elif isinstance(value, (bytes, bytearray)):
            self.write_u8(TAG_BYTES)
            self.write_u32(len(value))
            self._parts.append(bytes(value))
        elif isinstance(value, (list, tuple)):
            self.write_u8(TAG_LIST)
            self.write_u32(len(value))
            for item in value:
                self.write_value(item)
        elif isinstance(value, dict):
            self.write_u8(TAG_MAP)
            self.write_u32(len(value))
            for key, item in value.items():
                self.write_value(key)
                self.write_value(item)
        else:
            raise TypeError(f"Cannot encode value of type {type(value).__name__}")


class Reader:
    """Keeps track of the current offset while reading little-endian data."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0

    def tell(self) -> int:
        return self._offset

    def at_end(self) -> bool:
        return self._offset == len(self._data)

    def _take(self, size: int, what: str) -> bytes:
        if self._offset + size > len(self._data):
            raise FormatError(f"Unexpected end of data while reading {what} at offset {self._offset}")
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def read_bytes(self, size: int) -> bytes:
        return self._take(size, "raw bytes")

    def read_u8(self) -> int:
        return self._take(1, "uint8")[0]

    def read_u16(self) -> int:
        return struct.unpack("<H", self._take(2, "uint16"))[0]

    def read_u32(self) -> int:
        return struct.unpack("<I", self._take(4, "uint32"))[0]

    def read_value(self) -> Any:
        tag = self.read_u8()
        if tag == TAG_NONE:
            return None
        if tag == TAG_FALSE:
            return False
        if tag == TAG_TRUE:
            return True
        if tag == TAG_INT:
            return struct.unpack("<q", self._take(8, "int64"))[0]
        if tag == TAG_FLOAT:
            return struct.unpack("<d", self._take(8, "float64"))[0]
        if tag == TAG_STR:
            raw = self._take(self.read_u32(), "string payload")
            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise FormatError(f"Invalid UTF-8 string ending at offset {self._offset}") from e
        if tag == TAG_BYTES:
            return self._take(self.read_u32(), "bytes payload")
        if tag == TAG_LIST:
            return [self.read_value() for _ in range(self.read_u32())]
        if tag == TAG_MAP:
            result = {}
            for _ in range(self.read_u32()):
                key = self.read_value()
                try:
                    result[key] = self.read_value()
                except TypeError as e:
                    raise FormatError(f"Unhashable map key of type {type(key).__name__}") from e
            return result
        raise FormatError(f"Unknown value tag {tag} at offset {self._offset - 1}")


def encode(value: Any) -> bytes:
    w = Writer()
    w.write_raw(MAGIC)
    w.write_u16(VERSION)
    w.write_value(value)
    return w.getvalue()


def decode(data: bytes) -> Any:
    r = Reader(data)
    if r.read_bytes(len(MAGIC)) != MAGIC:
        raise FormatError("Not an asset catalog (bad magic)")
    version = r.read_u16()
    if version != VERSION:
        raise FormatError(f"Unsupported catalog version {version}, expected {VERSION}")
    value = r.read_value()
    if not r.at_end():
        raise FormatError(f"Trailing data after offset {r.tell()}")
    return value
