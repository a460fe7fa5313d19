"""Metric recording helpers: a scope timer and event, batch and trade recorders."""

from __future__ import annotations

import threading
import time
from types import TracebackType
from typing import Any

LabelKey = tuple[str, tuple[tuple[str, str], ...]]


def _key(name: str, labels: dict[str, Any] | None) -> LabelKey:
    items = tuple(sorted((k, str(v)) for k, v in (labels or {}).items()))
    return name, items


class MetricsSink:
    """In-process store for counters, histogram samples and gauges.

    Counters and gauges are keyed by ``(name, sorted label pairs)``;
    histograms by name.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.counters: dict[LabelKey, int] = {}
        self.histograms: dict[str, list[float]] = {}
        self.gauges: dict[LabelKey, float] = {}

    def increment(self, name: str, value: int = 1, labels: dict[str, Any] | None = None) -> None:
        key = _key(name, labels)
        with self._lock:
            self.counters[key] = self.counters.get(key, 0) + value

    def observe(self, name: str, value: float) -> None:
        with self._lock:
            self.histograms.setdefault(name, []).append(float(value))

    def set_gauge(self, name: str, value: float, labels: dict[str, Any] | None = None) -> None:
        with self._lock:
            self.gauges[_key(name, labels)] = float(value)

    def reset(self) -> None:
        with self._lock:
            self.counters.clear()
            self.histograms.clear()
            self.gauges.clear()


_DEFAULT_SINK = MetricsSink()


def default_sink() -> MetricsSink:
    """The process-wide metrics sink."""
    return _DEFAULT_SINK


class Timer:
    """Context manager that records the duration of its block in seconds.

    The histogram is named ``bitquery_sdk_<name>_duration_seconds``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.start = time.perf_counter()

    @property
    def metric_name(self) -> str:
        return f"bitquery_sdk_{self.name}_duration_seconds"

    def elapsed(self) -> float:
        """Seconds since the timer was started."""
        return time.perf_counter() - self.start

    def __enter__(self) -> Timer:
        self.start = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        default_sink().observe(self.metric_name, self.elapsed())


def record_event_processed(event_type: str, success: bool) -> None:
    """Count one processed event, labelled by type and success."""
    default_sink().increment(
        "bitquery_sdk_events_processed_total",
        1,
        {"type": event_type, "status": "success" if success else "failure"},
    )


def record_batch_processed(size: int, duration_ms: float) -> None:
    """Record the size and duration of a processed batch."""
    sink = default_sink()
    sink.observe("bitquery_sdk_batch_size", float(size))
    sink.observe("bitquery_sdk_batch_duration_ms", duration_ms)


def record_dex_trade(
    exchange_name: str,
    pair: str,
    trade_amount_usd: float,
    lag_messages: int,
    topic: str,
    partition: int,
) -> None:
    """Record a processed DEX trade, its value and the consumer lag."""
    sink = default_sink()
    sink.increment(
        "dex_trades_processed_total", 1, {"exchange": exchange_name, "token_pair": pair}
    )
    sink.observe("trade_value_usd", trade_amount_usd)
    sink.set_gauge(
        "kafka_consumer_lag",
        float(lag_messages),
        {"topic": topic, "partition": str(partition)},
    )