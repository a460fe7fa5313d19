"""Lightweight distributed tracing: spans, trace contexts and timing helpers."""

from __future__ import annotations

import functools
import inspect
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

SERVICE_NAME = "zola-streams"
SERVICE_VERSION = "2.0.0"

R = TypeVar("R")


def _now_micros() -> int:
    """Current wall-clock time in microseconds since the Unix epoch."""
    return time.time_ns() // 1000


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TraceContext:
    """Identifiers that tie a span to its trace, for propagation."""

    trace_id: str
    span_id: str
    parent_span_id: str | None = None
    baggage: dict[str, str] = field(default_factory=dict)


@dataclass
class SpanEvent:
    """A point-in-time occurrence recorded during a span."""

    name: str
    timestamp: int
    attributes: dict[str, str] = field(default_factory=dict)


class SpanStatus(Enum):
    """Outcome of the operation a span covers."""

    OK = "Ok"
    ERROR = "Error"
    CANCELLED = "Cancelled"
    TIMEOUT = "Timeout"


@dataclass
class Span:
    """A unit of work in a trace; times are microseconds since the epoch."""

    span_id: str
    trace_id: str
    operation_name: str
    start_time: int
    parent_span_id: str | None = None
    end_time: int | None = None
    tags: dict[str, str] = field(default_factory=dict)
    events: list[SpanEvent] = field(default_factory=list)
    status: SpanStatus = SpanStatus.OK


class Tracer:
    """Creates root and child spans tagged with the service identity."""

    def __init__(self, service_name: str, version: str) -> None:
        self.service_name = service_name
        self.version = version

    def _service_tags(self) -> dict[str, str]:
        return {"service.name": self.service_name, "service.version": self.version}

    def start_span(self, operation_name: str) -> ActiveSpan:
        """Start a new root span in a fresh trace."""
        span = Span(
            span_id=_new_id(),
            trace_id=_new_id(),
            operation_name=operation_name,
            start_time=_now_micros(),
            tags=self._service_tags(),
        )
        return ActiveSpan(span)

    def start_child_span(
        self, parent_context: TraceContext, operation_name: str
    ) -> ActiveSpan:
        """Start a span that continues the trace of ``parent_context``."""
        span = Span(
            span_id=_new_id(),
            trace_id=parent_context.trace_id,
            parent_span_id=parent_context.span_id,
            operation_name=operation_name,
            start_time=_now_micros(),
            tags=self._service_tags(),
        )
        return ActiveSpan(span)


class ActiveSpan:
    """A span still in progress; changes are ignored once it is finished."""

    def __init__(self, span: Span) -> None:
        self.span = span
        self.finished = False

    def set_tag(self, key: str, value: str) -> None:
        if not self.finished:
            self.span.tags[key] = value

    def add_event(self, name: str, attributes: dict[str, str] | None = None) -> None:
        if not self.finished:
            self.span.events.append(
                SpanEvent(name, _now_micros(), dict(attributes or {}))
            )

    def set_status(self, status: SpanStatus) -> None:
        if not self.finished:
            self.span.status = status

    def record_error(self, error: str) -> None:
        """Mark the span failed and log the error as tags and an event."""
        if self.finished:
            return
        self.set_status(SpanStatus.ERROR)
        self.set_tag("error", "true")
        self.set_tag("error.message", error)
        self.add_event("error", {"error.message": error})

    def context(self) -> TraceContext:
        """Trace context for propagating this span to child operations."""
        return TraceContext(
            trace_id=self.span.trace_id,
            span_id=self.span.span_id,
            parent_span_id=self.span.parent_span_id,
        )

    def finish(self) -> FinishedSpan:
        """Stamp the end time and return the completed span."""
        if not self.finished:
            self.span.end_time = _now_micros()
            self.finished = True
        return FinishedSpan(self.span)

    def duration_micros(self) -> int | None:
        """Duration in microseconds, or None while the span is still open."""
        if self.span.end_time is None:
            return None
        return max(0, self.span.end_time - self.span.start_time)


class FinishedSpan:
    """A completed span with full timing information."""

    def __init__(self, span: Span) -> None:
        self.span = span

    def duration_micros(self) -> int:
        end = self.span.end_time if self.span.end_time is not None else _now_micros()
        return max(0, end - self.span.start_time)

    def to_jaeger_json(self) -> dict[str, Any]:
        """Export the span as a Jaeger-style JSON object."""
        return {
            "traceID": self.span.trace_id,
            "spanID": self.span.span_id,
            "parentSpanID": self.span.parent_span_id,
            "operationName": self.span.operation_name,
            "startTime": self.span.start_time,
            "duration": self.duration_micros(),
            "tags": [
                {"key": key, "value": value, "type": "string"}
                for key, value in self.span.tags.items()
            ],
            "logs": [
                {
                    "timestamp": event.timestamp,
                    "fields": [{"key": "event", "value": event.name}],
                }
                for event in self.span.events
            ],
        }


def traced(tracer: Tracer, operation_name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate a function (sync or async) so each call runs inside a span.

    A raised exception is recorded on the span and re-raised.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                span = tracer.start_span(operation_name)
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    span.record_error(repr(exc))
                    raise
                else:
                    span.set_status(SpanStatus.OK)
                    return result
                finally:
                    span.finish()

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            span = tracer.start_span(operation_name)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                span.record_error(repr(exc))
                raise
            else:
                span.set_status(SpanStatus.OK)
                return result
            finally:
                span.finish()

        return wrapper

    return decorator


class PerformanceMonitor:
    """Times operations, wrapping each in a span tagged with its duration."""

    def __init__(self, service_name: str) -> None:
        self.tracer = Tracer(service_name, SERVICE_VERSION)

    def time_operation(self, operation_name: str, func: Callable[[], R]) -> tuple[R, float]:
        """Run ``func`` and return its result with the elapsed seconds."""
        span = self.tracer.start_span(operation_name)
        start = time.perf_counter()
        result = func()
        duration = time.perf_counter() - start
        span.set_tag("duration_ms", str(int(duration * 1000)))
        span.finish()
        return result, duration

    async def time_async_operation(
        self, operation_name: str, func: Callable[[], Awaitable[R]]
    ) -> tuple[R, float]:
        """Await ``func()`` and return its result with the elapsed seconds."""
        span = self.tracer.start_span(operation_name)
        start = time.perf_counter()
        result = await func()
        duration = time.perf_counter() - start
        span.set_tag("duration_ms", str(int(duration * 1000)))
        span.finish()
        return result, duration


_GLOBAL_TRACER = Tracer(SERVICE_NAME, SERVICE_VERSION)


def global_tracer() -> Tracer:
    """The process-wide tracer."""
    return _GLOBAL_TRACER


def start_span(operation_name: str) -> ActiveSpan:
    """Start a root span with the global tracer."""
    return global_tracer().start_span(operation_name)


def start_child_span(parent_context: TraceContext, operation_name: str) -> ActiveSpan:
    """Start a child span with the global tracer."""
    return global_tracer().start_child_span(parent_context, operation_name)