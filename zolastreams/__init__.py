"""Observability toolkit: tracing spans, metrics registry, health checks, structured logging, backpressure and timing."""

__version__ = "2.0.0"

__all__ = ["eventlog", "health", "registry", "resources", "spans", "timing"]