"""Structured JSON logging with correlation IDs and business event helpers."""

from __future__ import annotations

import io
import json
import logging
import math
import sys
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, TextIO

logger = logging.getLogger(__name__)

_STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime"}

_LEVEL_NAMES = {"WARNING": "WARN"}


@dataclass(frozen=True)
class CorrelationId:
    """Identifier for tracking a request across services."""

    value: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_string(cls, value: str) -> CorrelationId:
        return cls(value)

    def as_str(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class LogContext:
    """Metadata attached to log entries; the ``with_*`` methods return new contexts."""

    correlation_id: CorrelationId | None = None
    user_id: str | None = None
    request_id: str | None = None
    component: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def with_correlation_id(self, correlation_id: CorrelationId) -> LogContext:
        return replace(self, correlation_id=correlation_id)

    def with_component(self, component: str) -> LogContext:
        return replace(self, component=component)

    def with_field(self, key: str, value: Any) -> LogContext:
        return replace(self, fields={**self.fields, key: value})

    def with_user_id(self, user_id: str) -> LogContext:
        return replace(self, user_id=user_id)

    def with_request_id(self, request_id: str) -> LogContext:
        return replace(self, request_id=request_id)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "correlation_id": (
                self.correlation_id.as_str() if self.correlation_id else None
            ),
            "user_id": self.user_id,
            "request_id": self.request_id,
            "component": self.component,
            "fields": dict(self.fields),
        }


@dataclass
class StructuredLogEntry:
    """One log line in structured form."""

    timestamp: str
    level: str
    message: str
    module: str | None = None
    location: str | None = None
    context: LogContext = field(default_factory=LogContext)
    fields: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "level": self.level,
                "message": self.message,
                "module": self.module,
                "location": self.location,
                "context": self.context.to_dict(),
                "fields": self.fields,
            }
        )


def _field_value(value: Any) -> Any:
    """Convert an extra record attribute to a JSON value, or None to drop it."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        return value
    return repr(value)


class StructuredLoggingLayer(logging.Handler):
    """Logging handler that writes each record as one JSON line.

    It also keeps a per-thread ``LogContext`` store.
    """

    def __init__(self, stream: TextIO | None = None, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.stream = stream
        self._contexts: dict[int, LogContext] = {}
        self._contexts_lock = threading.Lock()

    def set_context(self, context: LogContext) -> None:
        """Store ``context`` for the current thread."""
        with self._contexts_lock:
            self._contexts[threading.get_ident()] = context

    def get_context(self) -> LogContext:
        """Context stored for the current thread, or an empty one."""
        with self._contexts_lock:
            return self._contexts.get(threading.get_ident(), LogContext())

    def emit(self, record: logging.LogRecord) -> None:
        fields: dict[str, Any] = {}
        for name, value in vars(record).items():
            if name in _STANDARD_RECORD_ATTRS:
                continue
            converted = _field_value(value)
            if converted is not None:
                fields[name] = converted

        entry = StructuredLogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=_LEVEL_NAMES.get(record.levelname, record.levelname.upper()),
            message=record.getMessage(),
            module=record.name or "unknown",
            location=f"{record.pathname or 'unknown'}:{record.lineno or 0}",
            context=LogContext(),
            fields=fields,
        )
        try:
            line = entry.to_json()
        except (TypeError, ValueError):
            return
        stream = self.stream if self.stream is not None else sys.stdout
        print(line, file=stream)


class BusinessEventLogger:
    """Logs trading, error and performance events with structured context."""

    def __init__(self, layer: StructuredLoggingLayer | None = None) -> None:
        self.layer = layer if layer is not None else StructuredLoggingLayer(io.StringIO())

    def _store(self, context: LogContext, correlation_id: CorrelationId | None) -> None:
        if correlation_id is not None:
            context = context.with_correlation_id(correlation_id)
        self.layer.set_context(context)

    def log_dex_trade(
        self,
        program_id: str,
        pair: str,
        volume_usd: float,
        price: float,
        correlation_id: CorrelationId | None = None,
    ) -> None:
        context = (
            LogContext()
            .with_component("dex_processor")
            .with_field("event_type", "dex_trade")
            .with_field("program_id", program_id)
            .with_field("trading_pair", pair)
            .with_field("volume_usd", volume_usd)
            .with_field("price", price)
        )
        self._store(context, correlation_id)
        logger.info(
            "DEX trade processed",
            extra={
                "program_id": program_id,
                "trading_pair": pair,
                "volume_usd": str(volume_usd),
                "price": str(price),
            },
        )

    def log_error(
        self,
        component: str,
        error_type: str,
        error_message: str,
        correlation_id: CorrelationId | None = None,
    ) -> None:
        context = (
            LogContext()
            .with_component(component)
            .with_field("event_type", "error")
            .with_field("error_type", error_type)
            .with_field("error_message", error_message)
        )
        self._store(context, correlation_id)
        logger.error(
            "Error occurred",
            extra={
                "component": component,
                "error_type": error_type,
                "error_message": error_message,
            },
        )

    def log_performance(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        correlation_id: CorrelationId | None = None,
    ) -> None:
        context = (
            LogContext()
            .with_component("performance_monitor")
            .with_field("event_type", "performance")
            .with_field("operation", operation)
            .with_field("duration_ms", duration_ms)
            .with_field("success", success)
        )
        self._store(context, correlation_id)
        level = logging.INFO if success else logging.WARNING
        logger.log(
            level,
            "Operation completed",
            extra={
                "operation": operation,
                "duration_ms": str(duration_ms),
                "success": str(success).lower(),
            },
        )


_BUSINESS_LOGGER = BusinessEventLogger()


def get_business_logger() -> BusinessEventLogger:
    """The process-wide business event logger."""
    return _BUSINESS_LOGGER


def log_dex_trade(
    program_id: str,
    pair: str,
    volume_usd: float,
    price: float,
    correlation_id: CorrelationId | None = None,
) -> None:
    """Log a DEX trade with the global logger."""
    get_business_logger().log_dex_trade(program_id, pair, volume_usd, price, correlation_id)


def log_error(
    component: str,
    error_type: str,
    error_message: str,
    correlation_id: CorrelationId | None = None,
) -> None:
    """Log an error with the global logger."""
    get_business_logger().log_error(component, error_type, error_message, correlation_id)


def log_performance(
    operation: str,
    duration_ms: float,
    success: bool,
    correlation_id: CorrelationId | None = None,
) -> None:
    """Log an operation's performance with the global logger."""
    get_business_logger().log_performance(operation, duration_ms, success, correlation_id)