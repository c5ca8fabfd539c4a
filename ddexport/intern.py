"""String dictionary for the v0.5 payload: strings and attribute values by index."""

from __future__ import annotations

import math
import struct
from decimal import Decimal
from typing import Any, Hashable

from ddexport.wire import Writer

_BOOLEAN_TRUE = "true"
_BOOLEAN_FALSE = "false"
_EMPTY_ARRAY = "[]"


def _float_bits(value: float) -> int:
    return struct.unpack(">Q", struct.pack(">d", value))[0]


def _shortest_float(value: float) -> str:
    """Shortest round-trip form: '1.0', '0.001', '1e20', '1.5e-7'."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    sign = "-" if math.copysign(1.0, value) < 0 else ""
    if value == 0:
        return sign + "0.0"
    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    length = len(digits)
    point = length + exponent
    if 0 <= exponent and point <= 16:
        body = digits + "0" * exponent + ".0"
    elif 0 < point <= 16:
        body = digits[:point] + "." + digits[point:]
    elif -5 < point <= 0:
        body = "0." + "0" * (-point) + digits
    elif length == 1:
        body = f"{digits}e{point - 1}"
    else:
        body = f"{digits[0]}.{digits[1:]}e{point - 1}"
    return sign + body


def _array_kind(items: list | tuple) -> str:
    if not items:
        return "empty"
    if all(isinstance(item, bool) for item in items):
        return "bool"
    if all(isinstance(item, int) and not isinstance(item, bool) for item in items):
        return "i64"
    if all(isinstance(item, float) for item in items):
        return "f64"
    if all(isinstance(item, str) for item in items):
        return "str"
    raise TypeError(f"unsupported or mixed array attribute value: {items!r}")


def literal(value: Any) -> str:
    """Render a single array element as it appears inside an array string."""
    if isinstance(value, bool):
        return _BOOLEAN_TRUE if value else _BOOLEAN_FALSE
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _shortest_float(value)
    if isinstance(value, str):
        return f'"{value}"'
    raise TypeError(f"unsupported array element: {value!r}")


def value_as_str(value: Any) -> str:
    """The dictionary text for an attribute value."""
    if isinstance(value, (list, tuple)):
        _array_kind(value)
        if not value:
            return _EMPTY_ARRAY
        return "[" + ",".join(literal(item) for item in value) + "]"
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return literal(value)
    raise TypeError(f"unsupported attribute value: {value!r}")


def _value_key(value: Any) -> Hashable:
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, int):
        return ("i64", value)
    if isinstance(value, float):
        return ("f64", _float_bits(value))
    if isinstance(value, str):
        return ("string", value)
    if isinstance(value, (list, tuple)):
        kind = _array_kind(value)
        if kind == "f64":
            return ("array", kind, tuple(_float_bits(item) for item in value))
        return ("array", kind, tuple(value))
    raise TypeError(f"unsupported attribute value: {value!r}")


class StringInterner:
    """Assigns each distinct string or value a stable index in insertion order."""

    def __init__(self) -> None:
        self._index: dict[Hashable, int] = {}
        self._texts: list[str] = []

    def __len__(self) -> int:
        return len(self._texts)

    def _add(self, key: Hashable, text_of: Any) -> int:
        found = self._index.get(key)
        if found is not None:
            return found
        position = len(self._texts)
        self._index[key] = position
        self._texts.append(text_of())
        return position

    def intern(self, data: str) -> int:
        """Index of a plain string."""
        return self._add(("raw", data), lambda: data)

    def intern_value(self, value: Any) -> int:
        """Index of an attribute value; equal values share an index."""
        return self._add(_value_key(value), lambda: value_as_str(value))

    def write_dictionary(self, writer: Writer) -> None:
        """Write all entries as a MessagePack array of strings."""
        writer.write_array_len(len(self._texts))
        for text in self._texts:
            writer.write_str(text)