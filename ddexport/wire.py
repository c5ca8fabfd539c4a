"""MessagePack writer with fixed-width integer encodings, as the agent expects."""

from __future__ import annotations

import struct

from ddexport.errors import MessagePackError

_U16 = 1 << 16
_U32 = 1 << 32
_U64 = 1 << 64


class Writer:
    """Accumulates MessagePack-encoded values into a byte buffer."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def _length_header(self, length: int, fix_limit: int, fix_marker: int,
                       marker8: int | None, marker16: int, marker32: int) -> None:
        if length < 0:
            raise MessagePackError(f"negative length {length}")
        if length < fix_limit:
            self._buffer.append(fix_marker | length)
        elif marker8 is not None and length < 256:
            self._buffer += bytes((marker8, length))
        elif length < _U16:
            self._buffer.append(marker16)
            self._buffer += struct.pack(">H", length)
        elif length < _U32:
            self._buffer.append(marker32)
            self._buffer += struct.pack(">I", length)
        else:
            raise MessagePackError(f"length {length} too large")

    def write_str(self, value: str | bytes) -> None:
        """Write a UTF-8 string; bytes are written as already-encoded text."""
        data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        self._length_header(len(data), 32, 0xA0, 0xD9, 0xDA, 0xDB)
        self._buffer += data

    def write_array_len(self, length: int) -> None:
        self._length_header(length, 16, 0x90, None, 0xDC, 0xDD)

    def write_map_len(self, length: int) -> None:
        self._length_header(length, 16, 0x80, None, 0xDE, 0xDF)

    def _write_int(self, marker: int, fmt: str, value: int, low: int, high: int) -> None:
        if not low <= value < high:
            raise MessagePackError(f"value {value} out of range")
        self._buffer.append(marker)
        self._buffer += struct.pack(fmt, value)

    def write_u32(self, value: int) -> None:
        self._write_int(0xCE, ">I", value, 0, _U32)

    def write_u64(self, value: int) -> None:
        self._write_int(0xCF, ">Q", value, 0, _U64)

    def write_i32(self, value: int) -> None:
        self._write_int(0xD2, ">i", value, -(1 << 31), 1 << 31)

    def write_i64(self, value: int) -> None:
        self._write_int(0xD3, ">q", value, -(1 << 63), 1 << 63)

    def write_f64(self, value: float) -> None:
        self._buffer.append(0xCB)
        self._buffer += struct.pack(">d", float(value))

    def extend(self, data: bytes) -> None:
        """Append raw, already-encoded bytes."""
        self._buffer += data

    def getvalue(self) -> bytes:
        return bytes(self._buffer)