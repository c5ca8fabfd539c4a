"""Injects and extracts span contexts using Datadog's HTTP header format."""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping, MutableMapping

from ddexport.spans import SpanContext, TraceFlags, TraceState
from ddexport.tracestate import DatadogTraceStateBuilder, priority_sampling_enabled

DATADOG_TRACE_ID_HEADER = "x-datadog-trace-id"
DATADOG_PARENT_ID_HEADER = "x-datadog-parent-id"
DATADOG_SAMPLING_PRIORITY_HEADER = "x-datadog-sampling-priority"

_HEADER_FIELDS = (
    DATADOG_TRACE_ID_HEADER,
    DATADOG_PARENT_ID_HEADER,
    DATADOG_SAMPLING_PRIORITY_HEADER,
)

_UNSIGNED = re.compile(r"\+?[0-9]+")
_SIGNED = re.compile(r"[+-]?[0-9]+")
_U64_LIMIT = 1 << 64
_I32_LOW = -(1 << 31)
_I32_HIGH = 1 << 31
_LOW_64_BITS = _U64_LIMIT - 1


class SamplingPriority(enum.IntEnum):
    USER_REJECT = -1
    AUTO_REJECT = 0
    AUTO_KEEP = 1
    USER_KEEP = 2


class _ExtractError(ValueError):
    """A header value could not be interpreted."""


def _parse_u64(text: str) -> int:
    if not _UNSIGNED.fullmatch(text):
        raise _ExtractError(text)
    number = int(text)
    if number >= _U64_LIMIT:
        raise _ExtractError(text)
    return number


def _parse_sampling_priority(text: str) -> SamplingPriority:
    if not _SIGNED.fullmatch(text):
        raise _ExtractError(text)
    number = int(text)
    if not _I32_LOW <= number < _I32_HIGH:
        raise _ExtractError(text)
    try:
        return SamplingPriority(number)
    except ValueError as exc:
        raise _ExtractError(text) from exc


class DatadogPropagator:
    """Reads and writes the ``x-datadog-*`` headers.

    With ``agent_sampling`` the sampling decision travels in the trace state
    (the ``psr`` entry) and the span is always recorded, leaving the final
    decision to the agent.
    """

    def __init__(self, agent_sampling: bool = False) -> None:
        self.agent_sampling = agent_sampling

    def __repr__(self) -> str:
        return f"DatadogPropagator(agent_sampling={self.agent_sampling!r})"

    def _state_and_flags(self, flags: TraceFlags) -> tuple[TraceState, TraceFlags]:
        if not self.agent_sampling or flags & TraceFlags.DEFERRED:
            return TraceState(), flags
        state = (
            DatadogTraceStateBuilder()
            .with_priority_sampling(bool(flags & TraceFlags.SAMPLED))
            .build()
        )
        return state, TraceFlags.SAMPLED

    def _sampling_priority(self, span_context: SpanContext) -> SamplingPriority:
        if self.agent_sampling:
            keep = priority_sampling_enabled(span_context.trace_state)
        else:
            keep = span_context.is_sampled()
        return SamplingPriority.AUTO_KEEP if keep else SamplingPriority.AUTO_REJECT

    def _extract_span_context(self, carrier: Mapping[str, str]) -> SpanContext:
        trace_id = _parse_u64(carrier.get(DATADOG_TRACE_ID_HEADER) or "")
        # A missing or broken parent id keeps the trace alive with an invalid span id.
        try:
            span_id = _parse_u64(carrier.get(DATADOG_PARENT_ID_HEADER) or "")
        except _ExtractError:
            span_id = 0
        try:
            priority = _parse_sampling_priority(
                carrier.get(DATADOG_SAMPLING_PRIORITY_HEADER) or ""
            )
        except _ExtractError:
            flags = TraceFlags.DEFERRED
        else:
            if priority in (SamplingPriority.USER_REJECT, SamplingPriority.AUTO_REJECT):
                flags = TraceFlags.DEFAULT
            else:
                flags = TraceFlags.SAMPLED
        trace_state, trace_flags = self._state_and_flags(flags)
        return SpanContext(trace_id, span_id, trace_flags, True, trace_state)

    def inject(self, span_context: SpanContext, carrier: MutableMapping[str, str]) -> None:
        """Write the headers for a valid span context into ``carrier``."""
        if not span_context.is_valid():
            return
        carrier[DATADOG_TRACE_ID_HEADER] = str(span_context.trace_id & _LOW_64_BITS)
        carrier[DATADOG_PARENT_ID_HEADER] = str(span_context.span_id)
        if not span_context.trace_flags & TraceFlags.DEFERRED:
            priority = self._sampling_priority(span_context)
            carrier[DATADOG_SAMPLING_PRIORITY_HEADER] = str(int(priority))

    def extract(self, carrier: Mapping[str, str]) -> SpanContext:
        """Read a remote span context; the empty context if there is none."""
        try:
            return self._extract_span_context(carrier)
        except _ExtractError:
            return SpanContext.empty()

    def fields(self) -> tuple[str, ...]:
        """The header names this propagator reads and writes."""
        return _HEADER_FIELDS