# zolastreams

Observability building blocks for services that consume high-volume event
streams. It depends only on the standard library.

## Modules

- `zolastreams.spans`: lightweight distributed tracing.
  - `Tracer(service_name, version)` starts root spans (`start_span`) and
    child spans (`start_child_span`). Every span is tagged with
    `service.name` and `service.version`.
  - `ActiveSpan` collects tags, events and a `SpanStatus`. `record_error`
    marks the span failed and adds `error` / `error.message` tags and an
    `error` event. Once the span is finished, further changes are ignored.
  - `ActiveSpan.finish()` returns a `FinishedSpan`. Its `to_jaeger_json()`
    gives a Jaeger-style dict, and its `duration_micros()` gives the
    duration in microseconds.
  - `PerformanceMonitor(service_name)` times a callable with
    `time_operation` or an awaitable factory with `time_async_operation`.
    Both return `(result, elapsed_seconds)`.
  - `traced(tracer, operation_name)` decorates sync or async functions so
    that each call runs inside a span. A raised exception is recorded on the
    span and raised again.
  - `global_tracer()`, `start_span()` and `start_child_span()` use a
    process-wide tracer named `zola-streams`.
- `zolastreams.registry`: a thread-safe in-process `MetricsRegistry`.
  - It holds integer counters and gauges and float histograms.
  - `get_histogram_stats` returns p50/p90/p95/p99/max/avg as
    `PerformanceMetrics`. Percentiles use a floored index, see `percentile`.
  - `export_prometheus` renders Prometheus text.
  - `get_system_metrics` builds a `SystemMetrics` snapshot from well-known
    gauge names.
  - `DexMetricsCollector` records trades, DEX instructions, processing
    latency and user activity into a registry.
- `zolastreams.health`: `HealthMonitor` runs its `HealthChecker`s and rolls
  them into a `HealthReport` with an overall `HealthStatus`.
  - `check_health` is async. `last_report()` returns the cached report.
  - A critical component that is unhealthy makes the service unhealthy. A
    critical degraded component, or a non-critical unhealthy one, makes it
    degraded.
  - The default checkers are `KafkaHealthChecker(1000)`,
    `CircuitBreakerHealthChecker()` and `SystemResourceChecker(1024.0, 80.0)`.
    `add_checker` adds your own subclass of `HealthChecker`.
- `zolastreams.eventlog`: structured JSON logging.
  - `CorrelationId` and an immutable `LogContext` with `with_*` builders.
  - `StructuredLogEntry.to_json()` serialises one entry.
  - `StructuredLoggingLayer` is a `logging.Handler` that writes each record
    as one JSON line. It writes to a given stream, or to stdout by default.
  - `BusinessEventLogger` and the module-level `log_dex_trade`, `log_error`
    and `log_performance` helpers log through the `zolastreams.eventlog`
    logger.
- `zolastreams.resources`: `ResourceManager` tracks in-flight messages and
  estimates memory at 20 KiB per message.
  - `check_resources` raises `ResourceError` and activates backpressure
    when a limit is reached.
  - `complete_processing` eases backpressure once usage drops below 70% of
    the thresholds.
  - `monitor()` is an async loop that logs the status periodically.
- `zolastreams.timing`: a `Timer` context manager and the recorders
  `record_event_processed`, `record_batch_processed` and `record_dex_trade`.
  All of them report to the process-wide `MetricsSink` from
  `default_sink()`.

## Installation

```
pip install zolastreams
```

## Quick look

```python
import asyncio

from zolastreams.health import HealthMonitor
from zolastreams.registry import MetricsRegistry
from zolastreams.spans import Tracer

tracer = Tracer("my-service", "1.0.0")
span = tracer.start_span("load_batch")
span.set_tag("batch.size", "100")
print(span.finish().to_jaeger_json())

registry = MetricsRegistry()
registry.increment_counter("http_requests_total", 100)
registry.set_gauge("memory_usage_bytes", 1024)
print(registry.export_prometheus())


async def main():
    report = await HealthMonitor().check_health()
    print(report.status, sorted(report.components))


asyncio.run(main())
```

### Backpressure

```python
from zolastreams.resources import ResourceError, ResourceManager

manager = ResourceManager(
    max_messages_in_flight=1000,
    max_memory_bytes=512 * 1024 * 1024,
    backpressure_threshold=0.8,
)


def handle(batch):
    try:
        manager.check_resources()
    except ResourceError as exc:
        print("backing off:", exc.reason)
        return
    manager.start_processing(len(batch))
    try:
        ...  # process the batch
    finally:
        manager.complete_processing(len(batch))
```

### Structured logs

```python
import logging

from zolastreams.eventlog import StructuredLoggingLayer, log_dex_trade

log = logging.getLogger("zolastreams.eventlog")
log.setLevel(logging.INFO)
log.addHandler(StructuredLoggingLayer())

log_dex_trade("raydium", "SOL/USDC", 1000.0, 100.0)
```

Each record becomes one JSON line. Extra record attributes appear under
`fields`, and `WARNING` is written as `WARN`.

### Timing

```python
from zolastreams.timing import Timer, default_sink

with Timer("load"):
    ...

print(default_sink().histograms["bitquery_sdk_load_duration_seconds"])
```

## What it does not do

- It does not consume from Kafka or any other broker. It has no command-line
  program and no HTTP server for health or metrics endpoints. You expose
  `HealthReport.to_dict()` or `MetricsRegistry.export_prometheus()` yourself.
- The built-in health checkers report fixed sample figures, not live
  measurements:
  - `KafkaHealthChecker` reports a consumer lag of 150.
  - `SystemResourceChecker` reports 245.5 MB of memory and 15.2% CPU.
- The following also report fixed sample figures:
  - `HealthMonitor`'s summary metrics.
  - `DexMetricsCollector.get_business_metrics`, apart from its trade counts.
  - `DexMetricsCollector.update_system_metrics`, apart from the uptime.
- `StructuredLoggingLayer` keeps a per-thread `LogContext` through
  `set_context` / `get_context`. The JSON lines it emits carry an empty
  context.

## Running the tests

```
pip install -e ".[test]"
pytest
```