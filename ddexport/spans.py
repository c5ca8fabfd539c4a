"""Span, trace-context and resource data handed to the Datadog encoders."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

AttributeValue = Union[bool, int, float, str, list, tuple]

_MAX_TRACE_ID = (1 << 128) - 1
_MAX_SPAN_ID = (1 << 64) - 1
_MAX_TRACE_STATE_LEN = 256
_KEY_SPECIALS = frozenset("_-*/")


class TraceFlags(enum.IntFlag):
    """W3C trace flags; DEFERRED marks a sampling decision left to the agent."""

    DEFAULT = 0x00
    SAMPLED = 0x01
    DEFERRED = 0x02


def _is_lower_alnum(char: str) -> bool:
    return ("a" <= char <= "z") or ("0" <= char <= "9")


def _valid_key(key: str) -> bool:
    if not key or len(key) > _MAX_TRACE_STATE_LEN:
        return False
    vendor_start = None
    for position, char in enumerate(key):
        if not (_is_lower_alnum(char) or char in _KEY_SPECIALS or char == "@"):
            return False
        if position == 0 and not _is_lower_alnum(char):
            return False
        if char == "@":
            if vendor_start is not None or position + 14 < len(key):
                return False
            vendor_start = position
        elif vendor_start is not None and position == vendor_start + 1:
            if not _is_lower_alnum(char):
                return False
    return True


def _valid_value(value: str) -> bool:
    return len(value) <= _MAX_TRACE_STATE_LEN and "," not in value and "=" not in value


@dataclass(frozen=True)
class TraceState:
    """Immutable, ordered vendor key/value list carried with a span context."""

    entries: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        entries = tuple((str(k), str(v)) for k, v in self.entries)
        for key, value in entries:
            if not _valid_key(key):
                raise ValueError(f"invalid trace state key {key!r}")
            if not _valid_value(value):
                raise ValueError(f"invalid trace state value {value!r}")
        object.__setattr__(self, "entries", entries)

    @classmethod
    def from_key_value(cls, pairs: Iterable[tuple[str, str]]) -> TraceState:
        """Build a trace state from key/value pairs, keeping their order."""
        return cls(tuple(pairs))

    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        for entry_key, value in self.entries:
            if entry_key == key:
                return value
        return None

    def insert(self, key: str, value: str) -> TraceState:
        """Return a new state with ``key`` set to ``value`` and moved to the front."""
        if not _valid_key(key):
            raise ValueError(f"invalid trace state key {key!r}")
        if not _valid_value(value):
            raise ValueError(f"invalid trace state value {value!r}")
        rest = tuple((k, v) for k, v in self.entries if k != key)
        return TraceState(((key, value),) + rest)

    def __str__(self) -> str:
        return ",".join(f"{k}={v}" for k, v in self.entries)


@dataclass(frozen=True)
class SpanContext:
    """Identity of a span: 128-bit trace id, 64-bit span id, flags and state."""

    trace_id: int = 0
    span_id: int = 0
    trace_flags: TraceFlags = TraceFlags.DEFAULT
    is_remote: bool = False
    trace_state: TraceState = field(default_factory=TraceState)

    def __post_init__(self) -> None:
        if not 0 <= self.trace_id <= _MAX_TRACE_ID:
            raise ValueError(f"trace id out of range: {self.trace_id}")
        if not 0 <= self.span_id <= _MAX_SPAN_ID:
            raise ValueError(f"span id out of range: {self.span_id}")
        object.__setattr__(self, "trace_flags", TraceFlags(int(self.trace_flags)))

    @classmethod
    def empty(cls) -> SpanContext:
        """The invalid, all-zero span context."""
        return cls()

    def is_valid(self) -> bool:
        return self.trace_id != 0 and self.span_id != 0

    def is_sampled(self) -> bool:
        return bool(self.trace_flags & TraceFlags.SAMPLED)


class StatusCode(enum.Enum):
    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class Status:
    code: StatusCode = StatusCode.UNSET
    description: str = ""

    @property
    def is_error(self) -> bool:
        return self.code is StatusCode.ERROR


@dataclass(frozen=True)
class InstrumentationScope:
    name: str = ""
    version: str | None = None
    schema_url: str | None = None


class Resource:
    """Ordered set of attributes describing the entity producing telemetry."""

    def __init__(
        self,
        attributes: Mapping[str, Any] | Iterable[tuple[str, Any]] = (),
        schema_url: str | None = None,
    ) -> None:
        items = attributes.items() if isinstance(attributes, Mapping) else attributes
        self._attributes: dict[str, Any] = dict(items)
        self.schema_url = schema_url

    def get(self, key: str) -> Any:
        """Return the attribute under ``key``, or None."""
        return self._attributes.get(key)

    def items(self) -> Iterator[tuple[str, Any]]:
        return iter(self._attributes.items())

    def __len__(self) -> int:
        return len(self._attributes)

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return self._attributes == other._attributes and self.schema_url == other.schema_url

    def __repr__(self) -> str:
        return f"Resource({self._attributes!r}, schema_url={self.schema_url!r})"


@dataclass
class SpanData:
    """A finished span. Times are nanoseconds since the Unix epoch."""

    span_context: SpanContext
    parent_span_id: int = 0
    name: str = ""
    start_time: int = 0
    end_time: int = 0
    attributes: list[tuple[str, Any]] = field(default_factory=list)
    status: Status = field(default_factory=Status)
    instrumentation_scope: InstrumentationScope = field(default_factory=InstrumentationScope)

    def __post_init__(self) -> None:
        if isinstance(self.attributes, Mapping):
            self.attributes = list(self.attributes.items())
        else:
            self.attributes = [(key, value) for key, value in self.attributes]


def format_float(value: float) -> str:
    """Shortest round-trip decimal form, positional, without a trailing '.0'."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return format(Decimal(repr(value)).normalize(), "f")


def _scalar_to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_float(value)
    return str(value)


def value_to_str(value: AttributeValue) -> str:
    """Render an attribute value as text, arrays as ``[a,b]`` with quoted strings."""
    if isinstance(value, (list, tuple)):
        parts = (f'"{item}"' if isinstance(item, str) else _scalar_to_str(item) for item in value)
        return "[" + ",".join(parts) + "]"
    return _scalar_to_str(value)