"""Mapping from spans to Datadog fields, and the ingestion API versions."""

from __future__ import annotations

import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ddexport import v03, v05
from ddexport.spans import Resource, SpanData
from ddexport.unified_tags import UnifiedTags

SAMPLING_PRIORITY_KEY = "_sampling_priority_v1"
DD_MEASURED_KEY = "_dd.measured"


@dataclass
class ModelConfig:
    """Settings passed to field mapping functions."""

    service_name: str = ""


FieldMappingFn = Callable[[SpanData, ModelConfig], str]


def default_service_name_mapping(span: SpanData, config: ModelConfig) -> str:
    return config.service_name


def default_name_mapping(span: SpanData, config: ModelConfig) -> str:
    return span.instrumentation_scope.name


def default_resource_mapping(span: SpanData, config: ModelConfig) -> str:
    return span.name


@dataclass
class Mapping:
    """Optional custom functions for the resource, name and service fields.

    Fields left as None use the default mapping: the configured service name,
    the instrumentation scope name and the span name respectively.
    """

    resource: FieldMappingFn | None = None
    name: FieldMappingFn | None = None
    service_name: FieldMappingFn | None = None

    def service_name_for(self, span: SpanData, config: ModelConfig) -> str:
        mapping = self.service_name or default_service_name_mapping
        return mapping(span, config)

    def name_for(self, span: SpanData, config: ModelConfig) -> str:
        mapping = self.name or default_name_mapping
        return mapping(span, config)

    def resource_for(self, span: SpanData, config: ModelConfig) -> str:
        mapping = self.resource or default_resource_mapping
        return mapping(span, config)

    @staticmethod
    def describe(mapping: FieldMappingFn | None) -> str:
        return "custom mapping" if mapping is not None else "default mapping"


class ApiVersion(enum.Enum):
    """Version of the Datadog trace ingestion API."""

    VERSION_03 = "v0.3"
    VERSION_05 = "v0.5"

    def path(self) -> str:
        return f"/{self.value}/traces"

    def content_type(self) -> str:
        return "application/msgpack"

    def encode(
        self,
        model_config: ModelConfig,
        traces: Sequence[Sequence[SpanData]],
        mapping: Mapping,
        unified_tags: UnifiedTags,
        resource: Resource | None = None,
    ) -> bytes:
        """Encode grouped traces in this version's wire format."""
        if self is ApiVersion.VERSION_03:
            return v03.encode(
                model_config,
                traces,
                mapping.service_name_for,
                mapping.name_for,
                mapping.resource_for,
                resource,
            )
        return v05.encode(
            model_config,
            traces,
            mapping.service_name_for,
            mapping.name_for,
            mapping.resource_for,
            unified_tags,
            resource,
        )