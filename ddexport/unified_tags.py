"""Datadog unified service tags (service, env, version)."""

from __future__ import annotations

import enum
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass


class UnifiedTagKind(enum.Enum):
    SERVICE = ("DD_SERVICE", "service")
    VERSION = ("DD_VERSION", "version")
    ENV = ("DD_ENV", "env")

    @property
    def env_variable(self) -> str:
        return self.value[0]

    @property
    def tag(self) -> str:
        return self.value[1]


@dataclass
class UnifiedTagField:
    kind: UnifiedTagKind
    value: str | None = None

    @classmethod
    def from_environment(
        cls, kind: UnifiedTagKind, environ: Mapping[str, str] | None = None
    ) -> UnifiedTagField:
        """Read the tag from its DD_* variable, lower-cased, if set."""
        env = os.environ if environ is None else environ
        raw = env.get(kind.env_variable)
        return cls(kind, raw.lower() if raw is not None else None)

    def count(self) -> int:
        return 1 if self.value is not None else 0

    def tag_name(self) -> str:
        return self.kind.tag


class UnifiedTags:
    """The three unified tags, initialised from the environment."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.service = UnifiedTagField.from_environment(UnifiedTagKind.SERVICE, environ)
        self.env = UnifiedTagField.from_environment(UnifiedTagKind.ENV, environ)
        self.version = UnifiedTagField.from_environment(UnifiedTagKind.VERSION, environ)

    def __iter__(self) -> Iterator[UnifiedTagField]:
        """Fields in the order they are written: service, env, version."""
        return iter((self.service, self.env, self.version))

    def compute_attribute_size(self) -> int:
        return sum(field.count() for field in self)