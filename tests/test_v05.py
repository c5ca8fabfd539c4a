import msgpack
import pytest

from ddexport import v05
from ddexport.spans import (
    InstrumentationScope,
    Resource,
    SpanContext,
    SpanData,
    Status,
    StatusCode,
    TraceFlags,
    TraceState,
)
from ddexport.unified_tags import UnifiedTags

SECOND = 1_000_000_000


def _span(trace_id=7, parent_span_id=1, span_id=99, **overrides):
    values = dict(
        span_context=SpanContext(trace_id, span_id, TraceFlags.DEFAULT, False, TraceState()),
        parent_span_id=parent_span_id,
        name="resource",
        start_time=0,
        end_time=SECOND,
        attributes=[("span.type", "web")],
        status=Status(StatusCode.OK),
        instrumentation_scope=InstrumentationScope("component"),
    )
    values.update(overrides)
    return SpanData(**values)


def _config_service(span, config):
    return "service_name"


def _scope_name(span, config):
    return span.instrumentation_scope.name


def _span_name(span, config):
    return span.name


def _encode(traces, unified_tags=None, resource=None, agent_sampling=False):
    tags = unified_tags if unified_tags is not None else UnifiedTags(environ={})
    return v05.encode(
        None,
        traces,
        _config_service,
        _scope_name,
        _span_name,
        tags,
        resource,
        agent_sampling,
    )


def _decode(payload):
    return msgpack.unpackb(payload, raw=False, strict_map_key=False)


def _first_span(payload):
    dictionary, traces = _decode(payload)
    return dictionary, traces[0][0]


def test_empty_payload_bytes():
    assert _encode([]) == b"\x92\x90\x90"


def test_span_layout_and_fields():
    dictionary, span = _first_span(_encode([[_span()]]))
    assert len(span) == v05.SPAN_NUM_ELEMENTS
    assert dictionary[span[0]] == "service_name"
    assert dictionary[span[1]] == "component"
    assert dictionary[span[2]] == "resource"
    assert span[3] == 7
    assert span[4] == 99
    assert span[5] == 1
    assert span[6] == 0
    assert span[7] == SECOND
    assert span[8] == 0
    assert dictionary[span[11]] == "web"


def test_empty_string_is_first_dictionary_entry():
    dictionary, _ = _first_span(_encode([[_span()]]))
    assert dictionary[0] == ""


def test_meta_with_resource_and_unified_tags():
    tags = UnifiedTags(environ={})
    tags.env.value = "test-env"
    tags.version.value = "test-version"
    tags.service.value = "test-service"
    resource = Resource({"host.name": "test"})
    dictionary, span = _first_span(_encode([[_span()]], tags, resource))
    meta = {dictionary[k]: dictionary[v] for k, v in span[9].items()}
    expected = {
        "host.name": "test",
        "service": "test-service",
        "env": "test-env",
        "version": "test-version",
        "span.type": "web",
    }
    assert {k: meta[k] for k in expected} == expected
    assert len(meta) == len(expected) + len(v05.GIT_META_TAGS)


def test_default_metrics():
    dictionary, span = _first_span(_encode([[_span()]]))
    metrics = {dictionary[k]: v for k, v in span[10].items()}
    assert metrics == {v05.SAMPLING_PRIORITY_KEY: 1.0, v05.DD_MEASURED_KEY: 0.0}


def test_measuring_from_trace_state():
    context = SpanContext(7, 99, TraceFlags.SAMPLED, False, TraceState((("m", "1"),)))
    dictionary, span = _first_span(_encode([[_span(span_context=context)]]))
    metrics = {dictionary[k]: v for k, v in span[10].items()}
    assert metrics[v05.DD_MEASURED_KEY] == 1.0


@pytest.mark.parametrize("flag, expected", [("1", 1.0), ("0", 0.0)])
def test_agent_sampling_follows_trace_state(flag, expected):
    context = SpanContext(7, 99, TraceFlags.SAMPLED, False, TraceState((("psr", flag),)))
    payload = _encode([[_span(span_context=context)]], agent_sampling=True)
    dictionary, span = _first_span(payload)
    metrics = {dictionary[k]: v for k, v in span[10].items()}
    assert metrics[v05.SAMPLING_PRIORITY_KEY] == expected


def test_error_status_sets_error():
    _, span = _first_span(_encode([[_span(status=Status(StatusCode.ERROR, "boom"))]]))
    assert span[8] == 1


def test_missing_span_type_uses_empty_string():
    dictionary, span = _first_span(_encode([[_span(attributes=[("a", "b")])]]))
    assert dictionary[span[11]] == ""


def test_negative_duration_is_zero():
    _, span = _first_span(_encode([[_span(start_time=5 * SECOND, end_time=SECOND)]]))
    assert span[7] == 0
    assert span[6] == 5 * SECOND


def test_trace_id_keeps_low_64_bits():
    _, span = _first_span(_encode([[_span(trace_id=(1 << 64) + 5)]]))
    assert span[3] == 5


def test_non_string_attribute_values_go_through_dictionary():
    attributes = [("count", 3), ("flag", True), ("list", [1, 2])]
    dictionary, span = _first_span(_encode([[_span(attributes=attributes)]]))
    meta = {dictionary[k]: dictionary[v] for k, v in span[9].items()}
    assert meta["count"] == "3"
    assert meta["flag"] == "true"
    assert meta["list"] == "[1,2]"


def test_dictionary_entries_are_unique_across_traces():
    traces = [[_span(1, 0, 1), _span(1, 1, 2)], [_span(2, 0, 3)]]
    dictionary, decoded = _decode(_encode(traces))
    assert len(dictionary) == len(set(dictionary))
    assert [len(t) for t in decoded] == [2, 1]
    assert [s[4] for t in decoded for s in t] == [1, 2, 3]