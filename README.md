# ddexport

Send finished tracing spans to a Datadog agent, and carry trace context across
service boundaries in Datadog's `x-datadog-*` headers.

The package has no runtime dependencies: the MessagePack payloads for the
agent's `v0.3` and `v0.5` trace APIs are encoded by the package itself
(`ddexport.wire.Writer`), and the default HTTP client is built on the standard
library.

## Installing

```
pip install ddexport
```

## Span data

The exporter works on `ddexport.spans.SpanData` records. Times are nanoseconds
since the Unix epoch; trace ids are 128-bit and span ids 64-bit integers.

```python
from ddexport.spans import InstrumentationScope, SpanContext, SpanData

span = SpanData(
    span_context=SpanContext(trace_id=7, span_id=99),
    parent_span_id=1,
    name="resource",
    start_time=0,
    end_time=1_000_000_000,
    attributes=[("span.type", "web")],
    instrumentation_scope=InstrumentationScope("component"),
)
```

`ddexport.spans` also provides `TraceFlags`, `TraceState`, `Status`,
`StatusCode` and `Resource`. A span whose status code is `StatusCode.ERROR` is
sent with the Datadog error flag set.

## Exporting spans

Build an exporter with `new_pipeline()` and the `DatadogPipelineBuilder`
methods, then hand it batches of `SpanData`:

```python
from ddexport.exporter import new_pipeline

exporter = (
    new_pipeline()
    .with_service_name("checkout")
    .with_env("staging")
    .with_version("1.4.2")
    .with_agent_endpoint("http://localhost:8126")
    .build_exporter()
)

exporter.export([span])
```

What the builder does:

- The agent endpoint defaults to `http://127.0.0.1:8126`. The API path for the
  chosen version (`/v0.3/traces` or `/v0.5/traces`) is appended to whatever path
  the endpoint already has; the host and query string are kept as given
  (`build_endpoint`). An endpoint that cannot be parsed makes `build_exporter`
  raise `ddexport.errors.InvalidUriError`.
- `with_api_version` takes an `ApiVersion` member (`ApiVersion.VERSION_03` or
  `ApiVersion.VERSION_05`); version 0.5 is the default.
- The service, env and version tags are read from the `DD_SERVICE`, `DD_ENV`
  and `DD_VERSION` environment variables (lower-cased) unless set on the
  builder. In the v0.5 format each tag that is set is added to every span's
  meta.
- With no service name set, it is taken from `OTEL_SERVICE_NAME`, then from a
  `service.name` entry in `OTEL_RESOURCE_ATTRIBUTES`, and otherwise is
  `unknown_service`.
- `with_http_client` replaces the default `UrllibHttpClient` with any object
  that has a `send(request)` method taking an `ExportRequest` and returning the
  HTTP status code. Passing `None` makes `build_exporter` raise
  `NoHttpClientError`.

`DatadogExporter.build_request(batch)` returns the `ExportRequest` without
sending it, which is handy for inspecting payloads. Spans are grouped into
traces by trace id (`group_into_traces`), and the request carries the
`Content-Type`, `X-Datadog-Trace-Count`, `Datadog-Meta-Lang` and
`Datadog-Meta-Tracer-Version` headers. `export` raises
`ddexport.errors.RequestError` when the client fails or the agent answers with
a status of 400 or above. `set_resource` attaches a `Resource` whose attributes
are added to every span's meta.

If `DD_GIT_REPOSITORY_URL` and `DD_GIT_COMMIT_SHA` are both set when the
package is imported, v0.5 payloads tag every span with `git.repository_url` and
`git.commit.sha`.

### Field mapping

By default a Datadog span gets:

| Datadog field | default value                         |
|---------------|---------------------------------------|
| service       | the configured service name           |
| name          | the instrumentation scope name        |
| resource      | the span name                         |

The `span.type` attribute becomes the Datadog span type. Each mapping can be
replaced with a function of `(span, model_config)` returning a string:

```python
exporter = (
    new_pipeline()
    .with_service_name("checkout")
    .with_name_mapping(lambda span, config: "http.request")
    .with_resource_mapping(lambda span, config: span.name.upper())
    .build_exporter()
)
```

The mappings live in `ddexport.model.Mapping`; `ApiVersion.encode` can also be
called directly to produce a payload from already grouped traces.

## Propagating context

`DatadogPropagator` reads and writes `x-datadog-trace-id`,
`x-datadog-parent-id` and `x-datadog-sampling-priority`:

```python
from ddexport.propagator import DatadogPropagator

propagator = DatadogPropagator()

context = propagator.extract({"x-datadog-trace-id": "1234", "x-datadog-parent-id": "12"})

headers = {}
propagator.inject(context, headers)

print(propagator.fields())
```

A missing or malformed trace id yields an empty span context; a malformed parent
id yields an invalid span id; a missing or unknown sampling priority marks the
sampling decision as deferred, and no priority header is written back out.
Only valid span contexts are injected.

With `DatadogPropagator(agent_sampling=True)` the sampling decision is carried
in the `psr` trace-state entry instead, and extracted contexts are always
marked sampled, leaving the decision to the agent.

## Trace state flags

The `m` (measured) and `psr` (priority sampling) trace-state entries steer what
the agent does with a span. Build them with `DatadogTraceStateBuilder`, or
adjust an existing `TraceState` with `with_measuring`, `with_priority_sampling`,
`measuring_enabled` and `priority_sampling_enabled` from `ddexport.tracestate`:

```python
from ddexport.tracestate import DatadogTraceStateBuilder, measuring_enabled

state = DatadogTraceStateBuilder().with_measuring(True).with_priority_sampling(True).build()
assert measuring_enabled(state)
```

The v0.5 payload reports the measured flag as the `_dd.measured` metric.

## What it does not do

The package is an exporter and propagator only. It does not create or record
spans, has no tracer, span processor or batching thread, and does not install
itself into any tracing framework: you build the `SpanData` records and call
`export` yourself. There is no command-line tool.

## Running the tests

```
pip install -e ".[test]"
pytest
```