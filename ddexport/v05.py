"""Encoder for the v0.5 trace ingestion API: a string dictionary plus span arrays.

The payload is a two-element array. The first element lists every distinct
string in the payload; the second holds the traces, each an array of spans.
A span is a 12-element array:

    service, name, resource, trace_id, span_id, parent_id,
    start, duration, error, meta, metrics, type

where service, name, resource, type and the meta/metrics keys (and meta
values) are indexes into the dictionary.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from typing import Any

from ddexport.intern import StringInterner
from ddexport.spans import Resource, SpanData
from ddexport.tracestate import measuring_enabled, priority_sampling_enabled
from ddexport.unified_tags import UnifiedTags
from ddexport.wire import Writer

SAMPLING_PRIORITY_KEY = "_sampling_priority_v1"
DD_MEASURED_KEY = "_dd.measured"
SPAN_TYPE_ATTRIBUTE = "span.type"
SPAN_NUM_ELEMENTS = 12
METRICS_LEN = 2

_LOW_64_BITS = (1 << 64) - 1

FieldMapping = Callable[[SpanData, Any], str]


def _git_metadata() -> tuple[tuple[str, str], ...]:
    repository_url = os.environ.get("DD_GIT_REPOSITORY_URL")
    commit_sha = os.environ.get("DD_GIT_COMMIT_SHA")
    if repository_url is None or commit_sha is None:
        return ()
    return (("git.repository_url", repository_url), ("git.commit.sha", commit_sha))


# Fixed once per process, tagging every span with the deployed source revision.
GIT_META_TAGS: tuple[tuple[str, str], ...] = _git_metadata()


def _sampling_priority(span: SpanData, agent_sampling: bool) -> float:
    if not agent_sampling:
        return 1.0
    return 1.0 if priority_sampling_enabled(span.span_context.trace_state) else 0.0


def _measuring(span: SpanData) -> float:
    return 1.0 if measuring_enabled(span.span_context.trace_state) else 0.0


def _write_unified_tags(
    writer: Writer, interner: StringInterner, unified_tags: UnifiedTags
) -> None:
    for tag in unified_tags:
        if tag.value is not None:
            writer.write_u32(interner.intern(tag.tag_name()))
            writer.write_u32(interner.intern(tag.value))


def _encode_traces(
    interner: StringInterner,
    model_config: Any,
    get_service_name: FieldMapping,
    get_name: FieldMapping,
    get_resource: FieldMapping,
    traces: Sequence[Sequence[SpanData]],
    unified_tags: UnifiedTags,
    resource: Resource | None,
    agent_sampling: bool,
) -> bytes:
    writer = Writer()
    writer.write_array_len(len(traces))
    resource_items = list(resource.items()) if resource is not None else []

    for trace in traces:
        writer.write_array_len(len(trace))
        for span in trace:
            start = span.start_time
            duration = max(span.end_time - span.start_time, 0)

            span_type = interner.intern("")
            for key, value in span.attributes:
                if key == SPAN_TYPE_ATTRIBUTE:
                    span_type = interner.intern_value(value)
                    break

            writer.write_array_len(SPAN_NUM_ELEMENTS)
            writer.write_u32(interner.intern(get_service_name(span, model_config)))
            writer.write_u32(interner.intern(get_name(span, model_config)))
            writer.write_u32(interner.intern(get_resource(span, model_config)))
            writer.write_u64(span.span_context.trace_id & _LOW_64_BITS)
            writer.write_u64(span.span_context.span_id)
            writer.write_u64(span.parent_span_id)
            writer.write_i64(start)
            writer.write_i64(duration)
            writer.write_i32(1 if span.status.is_error else 0)

            writer.write_map_len(
                len(span.attributes)
                + len(resource_items)
                + unified_tags.compute_attribute_size()
                + len(GIT_META_TAGS)
            )
            for key, value in resource_items:
                writer.write_u32(interner.intern(key))
                writer.write_u32(interner.intern_value(value))

            _write_unified_tags(writer, interner, unified_tags)

            for key, value in span.attributes:
                writer.write_u32(interner.intern(key))
                writer.write_u32(interner.intern_value(value))

            for key, value in GIT_META_TAGS:
                writer.write_u32(interner.intern(key))
                writer.write_u32(interner.intern(value))

            writer.write_map_len(METRICS_LEN)
            writer.write_u32(interner.intern(SAMPLING_PRIORITY_KEY))
            writer.write_f64(_sampling_priority(span, agent_sampling))
            writer.write_u32(interner.intern(DD_MEASURED_KEY))
            writer.write_f64(_measuring(span))
            writer.write_u32(span_type)

    return writer.getvalue()


def encode(
    model_config: Any,
    traces: Sequence[Sequence[SpanData]],
    get_service_name: FieldMapping,
    get_name: FieldMapping,
    get_resource: FieldMapping,
    unified_tags: UnifiedTags,
    resource: Resource | None = None,
    agent_sampling: bool = False,
) -> bytes:
    """Encode grouped traces as ``[dictionary, traces]``.

    With ``agent_sampling`` the sampling priority metric follows the ``psr``
    trace-state entry; otherwise every span is sent with priority 1.
    """
    interner = StringInterner()
    encoded_traces = _encode_traces(
        interner,
        model_config,
        get_service_name,
        get_name,
        get_resource,
        traces,
        unified_tags,
        resource,
        agent_sampling,
    )

    payload = Writer()
    payload.write_array_len(2)
    interner.write_dictionary(payload)
    payload.extend(encoded_traces)
    return payload.getvalue()