"""Datadog span exporter: groups spans into traces, encodes and posts them."""

from __future__ import annotations

import itertools
import os
import urllib.error
import urllib.request
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urlsplit, urlunsplit

from ddexport.errors import InvalidUriError, NoHttpClientError, RequestError
from ddexport.model import ApiVersion, FieldMappingFn, Mapping, ModelConfig
from ddexport.spans import Resource, SpanData
from ddexport.unified_tags import UnifiedTags

DEFAULT_AGENT_ENDPOINT = "http://127.0.0.1:8126"

DATADOG_TRACE_COUNT_HEADER = "X-Datadog-Trace-Count"
DATADOG_META_LANG_HEADER = "Datadog-Meta-Lang"
DATADOG_META_TRACER_VERSION_HEADER = "Datadog-Meta-Tracer-Version"

TRACER_LANGUAGE = "python"
TRACER_VERSION = "0.17.0"

_UNKNOWN_SERVICE = "unknown_service"
_HIERARCHICAL_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp"})


@dataclass
class ExportRequest:
    """An HTTP request ready to be sent to the agent."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class HttpClient(Protocol):
    def send(self, request: ExportRequest) -> int:
        """Send the request and return the HTTP status code."""


class UrllibHttpClient:
    """Blocking HTTP client built on the standard library."""

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"UrllibHttpClient(timeout={self.timeout!r})"

    def send(self, request: ExportRequest) -> int:
        """Send the request; return the status code, raising on transport failure."""
        outgoing = urllib.request.Request(
            request.url,
            data=request.body,
            headers=request.headers,
            method=request.method,
        )
        try:
            with urllib.request.urlopen(outgoing, timeout=self.timeout) as response:
                response.read()
                return response.status
        except urllib.error.HTTPError as exc:
            return exc.code
        except (urllib.error.URLError, OSError) as exc:
            raise RequestError(str(exc)) from exc


def build_endpoint(agent_endpoint: str, version: str) -> str:
    """Append the API version path to the agent endpoint, keeping host and query."""
    parts = urlsplit(agent_endpoint)
    if not parts.scheme:
        raise InvalidUriError("relative URL without a base")
    try:
        parts.port
    except ValueError as exc:
        raise InvalidUriError("invalid port number") from exc
    if parts.scheme.lower() in _HIERARCHICAL_SCHEMES and not parts.hostname:
        raise InvalidUriError("empty host")

    segments = [segment for segment in parts.path.split("/") if segment]
    segments.append(version)
    path = "/".join(segments)
    if not path.startswith("/"):
        path = "/" + path
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def group_into_traces(spans: Iterable[SpanData]) -> list[list[SpanData]]:
    """Group spans that share a trace id, ordered by trace id."""
    ordered = sorted(spans, key=lambda span: span.span_context.trace_id)
    return [
        list(group)
        for _, group in itertools.groupby(ordered, key=lambda span: span.span_context.trace_id)
    ]


def _detect_service_name() -> str:
    service_name = os.environ.get("OTEL_SERVICE_NAME")
    if service_name:
        return service_name
    for item in os.environ.get("OTEL_RESOURCE_ATTRIBUTES", "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip() == "service.name" and value.strip():
            return value.strip()
    return _UNKNOWN_SERVICE


class DatadogExporter:
    """Exports finished spans to a Datadog agent."""

    def __init__(
        self,
        model_config: ModelConfig,
        request_url: str,
        api_version: ApiVersion,
        client: HttpClient,
        mapping: Mapping,
        unified_tags: UnifiedTags,
    ) -> None:
        self.model_config = model_config
        self.request_url = request_url
        self.api_version = api_version
        self.client = client
        self.mapping = mapping
        self.unified_tags = unified_tags
        self.resource: Resource | None = None

    def __repr__(self) -> str:
        return (
            "DatadogExporter("
            f"model_config={self.model_config!r}, "
            f"request_url={self.request_url!r}, "
            f"api_version={self.api_version!r}, "
            f"client={self.client!r}, "
            f"resource_mapping={Mapping.describe(self.mapping.resource)!r}, "
            f"name_mapping={Mapping.describe(self.mapping.name)!r}, "
            f"service_name_mapping={Mapping.describe(self.mapping.service_name)!r})"
        )

    def build_request(self, batch: Sequence[SpanData]) -> ExportRequest:
        """Encode a batch of spans into a POST request for the agent."""
        traces = group_into_traces(batch)
        body = self.api_version.encode(
            self.model_config,
            traces,
            self.mapping,
            self.unified_tags,
            self.resource,
        )
        headers = {
            "Content-Type": self.api_version.content_type(),
            DATADOG_TRACE_COUNT_HEADER: str(len(traces)),
            DATADOG_META_LANG_HEADER: TRACER_LANGUAGE,
            DATADOG_META_TRACER_VERSION_HEADER: TRACER_VERSION,
        }
        return ExportRequest("POST", self.request_url, headers, body)

    def export(self, batch: Sequence[SpanData]) -> None:
        """Send the batch to the agent, raising RequestError on failure."""
        request = self.build_request(batch)
        try:
            status = self.client.send(request)
        except RequestError as exc:
            raise RequestError(f"HTTP request failed: {exc}") from exc
        except Exception as exc:
            raise RequestError(f"HTTP request failed: {exc}") from exc
        if status >= 400:
            raise RequestError(f"HTTP response error: status {status}")

    def set_resource(self, resource: Resource) -> None:
        self.resource = resource


class DatadogPipelineBuilder:
    """Configures and builds a DatadogExporter."""

    def __init__(self) -> None:
        self.agent_endpoint = DEFAULT_AGENT_ENDPOINT
        self.api_version = ApiVersion.VERSION_05
        self.client: HttpClient | None = UrllibHttpClient()
        self.mapping = Mapping()
        self.unified_tags = UnifiedTags()

    def __repr__(self) -> str:
        return (
            "DatadogPipelineBuilder("
            f"agent_endpoint={self.agent_endpoint!r}, "
            f"client={self.client!r}, "
            f"resource_mapping={Mapping.describe(self.mapping.resource)!r}, "
            f"name_mapping={Mapping.describe(self.mapping.name)!r}, "
            f"service_name_mapping={Mapping.describe(self.mapping.service_name)!r})"
        )

    def with_service_name(self, service_name: str) -> DatadogPipelineBuilder:
        self.unified_tags.service.value = service_name
        return self

    def with_version(self, version: str) -> DatadogPipelineBuilder:
        self.unified_tags.version.value = version
        return self

    def with_env(self, env: str) -> DatadogPipelineBuilder:
        self.unified_tags.env.value = env
        return self

    def with_agent_endpoint(self, endpoint: str) -> DatadogPipelineBuilder:
        self.agent_endpoint = endpoint
        return self

    def with_http_client(self, client: HttpClient | None) -> DatadogPipelineBuilder:
        self.client = client
        return self

    def with_api_version(self, api_version: ApiVersion) -> DatadogPipelineBuilder:
        self.api_version = api_version
        return self

    def with_resource_mapping(self, f: FieldMappingFn) -> DatadogPipelineBuilder:
        self.mapping.resource = f
        return self

    def with_name_mapping(self, f: FieldMappingFn) -> DatadogPipelineBuilder:
        self.mapping.name = f
        return self

    def with_service_name_mapping(self, f: FieldMappingFn) -> DatadogPipelineBuilder:
        self.mapping.service_name = f
        return self

    def _service_name(self) -> str:
        service_name = self.unified_tags.service.value
        return service_name if service_name is not None else _detect_service_name()

    def build_exporter(self) -> DatadogExporter:
        """Build the exporter, raising if no client is set or the endpoint is invalid."""
        if self.client is None:
            raise NoHttpClientError()
        return DatadogExporter(
            ModelConfig(service_name=self._service_name()),
            build_endpoint(self.agent_endpoint, self.api_version.path()),
            self.api_version,
            self.client,
            self.mapping,
            self.unified_tags,
        )


def new_pipeline() -> DatadogPipelineBuilder:
    """Create a new Datadog exporter pipeline builder."""
    return DatadogPipelineBuilder()