"""Datadog-specific entries in the trace state: measuring and priority sampling."""

from __future__ import annotations

from dataclasses import dataclass, replace

from ddexport.spans import TraceState

TRACE_STATE_MEASURE = "m"
TRACE_STATE_PRIORITY_SAMPLING = "psr"
TRACE_STATE_TRUE_VALUE = "1"
TRACE_STATE_FALSE_VALUE = "0"


def _flag(enabled: bool) -> str:
    return TRACE_STATE_TRUE_VALUE if enabled else TRACE_STATE_FALSE_VALUE


def _is_true(value: str | None) -> bool:
    return value == TRACE_STATE_TRUE_VALUE


@dataclass(frozen=True)
class DatadogTraceStateBuilder:
    """Builds a trace state holding the Datadog flags.

    Priority sampling is only recorded once it has been set, which enables
    agent-driven sampling.
    """

    measuring: bool = False
    priority_sampling: bool | None = None

    def with_measuring(self, enabled: bool) -> DatadogTraceStateBuilder:
        return replace(self, measuring=enabled)

    def with_priority_sampling(self, enabled: bool) -> DatadogTraceStateBuilder:
        return replace(self, priority_sampling=enabled)

    def build(self) -> TraceState:
        values = [(TRACE_STATE_MEASURE, _flag(self.measuring))]
        if self.priority_sampling is not None:
            values.append((TRACE_STATE_PRIORITY_SAMPLING, _flag(self.priority_sampling)))
        try:
            return TraceState.from_key_value(values)
        except ValueError:
            return TraceState()


def with_measuring(trace_state: TraceState, enabled: bool) -> TraceState:
    """Return the state with the measuring flag set; unchanged if it cannot be set."""
    try:
        return trace_state.insert(TRACE_STATE_MEASURE, _flag(enabled))
    except ValueError:
        return trace_state


def measuring_enabled(trace_state: TraceState) -> bool:
    return _is_true(trace_state.get(TRACE_STATE_MEASURE))


def with_priority_sampling(trace_state: TraceState, enabled: bool) -> TraceState:
    """Return the state with the priority-sampling flag set."""
    try:
        return trace_state.insert(TRACE_STATE_PRIORITY_SAMPLING, _flag(enabled))
    except ValueError:
        return trace_state


def priority_sampling_enabled(trace_state: TraceState) -> bool:
    return _is_true(trace_state.get(TRACE_STATE_PRIORITY_SAMPLING))