"""Encoder for the v0.3 trace ingestion API: spans as MessagePack maps."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from ddexport.spans import Resource, SpanData, value_to_str
from ddexport.wire import Writer

SAMPLING_PRIORITY_KEY = "_sampling_priority_v1"
DD_MEASURED_KEY = "_dd.measured"
SPAN_TYPE_ATTRIBUTE = "span.type"

_LOW_64_BITS = (1 << 64) - 1

FieldMapping = Callable[[SpanData, Any], str]


def _span_type(span: SpanData) -> str | None:
    for key, value in span.attributes:
        if key == SPAN_TYPE_ATTRIBUTE:
            return value_to_str(value)
    return None


def encode(
    model_config: Any,
    traces: Sequence[Sequence[SpanData]],
    get_service_name: FieldMapping,
    get_name: FieldMapping,
    get_resource: FieldMapping,
    resource: Resource | None = None,
) -> bytes:
    """Encode grouped traces as an array of arrays of span maps."""
    writer = Writer()
    writer.write_array_len(len(traces))

    for trace in traces:
        writer.write_array_len(len(trace))
        for span in trace:
            start = span.start_time
            duration = max(span.end_time - span.start_time, 0)

            span_type = _span_type(span)
            if span_type is not None:
                writer.write_map_len(12)
                writer.write_str("type")
                writer.write_str(span_type)
            else:
                writer.write_map_len(11)

            writer.write_str("service")
            writer.write_str(get_service_name(span, model_config))
            writer.write_str("name")
            writer.write_str(get_name(span, model_config))
            writer.write_str("resource")
            writer.write_str(get_resource(span, model_config))

            writer.write_str("trace_id")
            writer.write_u64(span.span_context.trace_id & _LOW_64_BITS)
            writer.write_str("span_id")
            writer.write_u64(span.span_context.span_id)
            writer.write_str("parent_id")
            writer.write_u64(span.parent_span_id)

            writer.write_str("start")
            writer.write_i64(start)
            writer.write_str("duration")
            writer.write_i64(duration)
            writer.write_str("error")
            writer.write_i32(1 if span.status.is_error else 0)

            resource_items = list(resource.items()) if resource is not None else []
            writer.write_str("meta")
            writer.write_map_len(len(span.attributes) + len(resource_items))
            for key, value in resource_items:
                writer.write_str(key)
                writer.write_str(value_to_str(value))
            for key, value in span.attributes:
                writer.write_str(key)
                writer.write_str(value_to_str(value))

            writer.write_str("metrics")
            writer.write_map_len(1)
            writer.write_str(SAMPLING_PRIORITY_KEY)
            writer.write_f64(1.0 if span.span_context.is_sampled() else 0.0)

    return writer.getvalue()