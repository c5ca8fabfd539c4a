"""Datadog trace exporter, v0.3/v0.5 payload encoders and header propagator."""

__version__ = "0.1.0"