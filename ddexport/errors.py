"""Errors raised by the Datadog exporter."""

from __future__ import annotations


class DatadogError(Exception):
    """Base class for all exporter errors."""

    exporter_name = "datadog"

    @property
    def message(self) -> str:
        return str(self)


class MessagePackError(DatadogError):
    """A payload could not be encoded as MessagePack."""

    def __init__(self, message: str = "message pack error") -> None:
        super().__init__(message)


class NoHttpClientError(DatadogError):
    """The pipeline was built without an HTTP client."""

    def __init__(
        self,
        message: str = "http client must be set, provide one with with_http_client",
    ) -> None:
        super().__init__(message)


class RequestError(DatadogError):
    """Building or sending the HTTP request failed."""


class InvalidUriError(DatadogError):
    """The agent endpoint could not be parsed as a URL."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"invalid url {reason}")