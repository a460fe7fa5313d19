"""Health monitoring: per-component checks rolled up into a service report."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from zolastreams.spans import SERVICE_VERSION

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Overall health of a component or of the whole service."""

    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    UNHEALTHY = "Unhealthy"


def _epoch_seconds() -> int:
    return int(time.time())


@dataclass
class ComponentHealth:
    """Result of one component's health check."""

    name: str
    status: HealthStatus
    last_check: int
    response_time_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "name": self.name,
            "status": self.status.value,
            "last_check": self.last_check,
            "response_time_ms": self.response_time_ms,
            "details": dict(self.details),
            "error": self.error,
        }


@dataclass
class HealthMetrics:
    """Key service-level figures included in a health report."""

    memory_used_mb: float
    memory_peak_mb: float
    cpu_usage_percent: float
    messages_per_minute: int
    error_rate_last_hour: float
    consumer_lag: int


@dataclass
class HealthReport:
    """Complete health report for the service."""

    status: HealthStatus
    version: str
    uptime_seconds: int
    timestamp: str
    components: dict[str, ComponentHealth]
    metrics: HealthMetrics

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "status": self.status.value,
            "version": self.version,
            "uptime_seconds": self.uptime_seconds,
            "timestamp": self.timestamp,
            "components": {
                name: component.to_dict() for name, component in self.components.items()
            },
            "metrics": asdict(self.metrics),
        }


class HealthChecker(ABC):
    """A check for one component; subclasses set ``name`` and implement the check."""

    name: str = "component"

    @abstractmethod
    async def check_health(self) -> ComponentHealth:
        """Run the check and describe the component's health."""

    def is_critical(self) -> bool:
        """Whether an unhealthy result makes the whole service unhealthy."""
        return True


class KafkaHealthChecker(HealthChecker):
    """Checks broker connectivity and consumer lag against a threshold."""

    name = "kafka"
    _SIMULATED_LAG = 150

    def __init__(self, consumer_lag_threshold: int) -> None:
        self.consumer_lag_threshold = consumer_lag_threshold
        self.connection_timeout = 5.0

    async def _check_connection(self) -> tuple[HealthStatus, int, str | None]:
        consumer_lag = self._SIMULATED_LAG
        if consumer_lag > self.consumer_lag_threshold:
            return (
                HealthStatus.DEGRADED,
                consumer_lag,
                f"Consumer lag {consumer_lag} exceeds threshold "
                f"{self.consumer_lag_threshold}",
            )
        return HealthStatus.HEALTHY, consumer_lag, None

    async def check_health(self) -> ComponentHealth:
        start = time.perf_counter()
        timestamp = _epoch_seconds()
        status, consumer_lag, error = await self._check_connection()
        response_time = float(int((time.perf_counter() - start) * 1000))
        return ComponentHealth(
            name=self.name,
            status=status,
            last_check=timestamp,
            response_time_ms=response_time,
            details={
                "consumer_lag": consumer_lag,
                "lag_threshold": self.consumer_lag_threshold,
            },
            error=error,
        )


class CircuitBreakerHealthChecker(HealthChecker):
    """Reports the state of the circuit breaker."""

    name = "circuit_breaker"

    async def check_health(self) -> ComponentHealth:
        return ComponentHealth(
            name=self.name,
            status=HealthStatus.HEALTHY,
            last_check=_epoch_seconds(),
            response_time_ms=1.0,
            details={"state": "closed", "failure_count": 0, "success_rate": 0.98},
            error=None,
        )


class SystemResourceChecker(HealthChecker):
    """Compares memory and CPU usage with configured thresholds."""

    name = "system_resources"
    _MEMORY_USED_MB = 245.5
    _CPU_USAGE_PERCENT = 15.2

    def __init__(self, memory_threshold_mb: float, cpu_threshold_percent: float) -> None:
        self.memory_threshold_mb = memory_threshold_mb
        self.cpu_threshold_percent = cpu_threshold_percent

    def is_critical(self) -> bool:
        return False

    async def check_health(self) -> ComponentHealth:
        memory_used = self._MEMORY_USED_MB
        cpu_usage = self._CPU_USAGE_PERCENT
        details = {
            "memory_used_mb": memory_used,
            "memory_threshold_mb": self.memory_threshold_mb,
            "cpu_usage_percent": cpu_usage,
            "cpu_threshold_percent": self.cpu_threshold_percent,
        }
        degraded = (
            memory_used > self.memory_threshold_mb
            or cpu_usage > self.cpu_threshold_percent
        )
        return ComponentHealth(
            name=self.name,
            status=HealthStatus.DEGRADED if degraded else HealthStatus.HEALTHY,
            last_check=_epoch_seconds(),
            response_time_ms=5.0,
            details=details,
            error="Resource usage exceeds thresholds" if degraded else None,
        )


class HealthMonitor:
    """Runs every registered checker and rolls the results into a report."""

    def __init__(self) -> None:
        self._checkers: list[HealthChecker] = [
            KafkaHealthChecker(1000),
            CircuitBreakerHealthChecker(),
            SystemResourceChecker(1024.0, 80.0),
        ]
        self._start = time.monotonic()
        self._last_report: HealthReport | None = None

    def add_checker(self, checker: HealthChecker) -> None:
        self._checkers.append(checker)

    async def check_health(self) -> HealthReport:
        """Check all components, cache and return the resulting report."""
        logger.debug("Starting comprehensive health check")
        components: dict[str, ComponentHealth] = {}
        overall = HealthStatus.HEALTHY

        for checker in self._checkers:
            component = await checker.check_health()
            critical = checker.is_critical()
            if component.status is HealthStatus.UNHEALTHY and critical:
                overall = HealthStatus.UNHEALTHY
            elif overall is HealthStatus.HEALTHY and (
                (component.status is HealthStatus.DEGRADED and critical)
                or (component.status is HealthStatus.UNHEALTHY and not critical)
            ):
                overall = HealthStatus.DEGRADED
            components[checker.name] = component

        report = HealthReport(
            status=overall,
            version=SERVICE_VERSION,
            uptime_seconds=int(time.monotonic() - self._start),
            timestamp=datetime.now(timezone.utc).isoformat(),
            components=components,
            metrics=self._collect_metrics(components),
        )
        self._last_report = report

        if overall is HealthStatus.HEALTHY:
            logger.debug("Health check completed: all systems healthy")
        elif overall is HealthStatus.DEGRADED:
            logger.warning("Health check completed: service degraded")
        else:
            logger.error("Health check completed: service unhealthy")
        return report

    def last_report(self) -> HealthReport | None:
        """The most recent report, or None if no check has run yet."""
        return self._last_report

    @staticmethod
    def _collect_metrics(components: dict[str, ComponentHealth]) -> HealthMetrics:
        lag: Any = None
        kafka = components.get("kafka")
        if kafka is not None:
            lag = kafka.details.get("consumer_lag")
        if not isinstance(lag, int) or isinstance(lag, bool) or lag < 0:
            lag = 0
        return HealthMetrics(
            memory_used_mb=245.5,
            memory_peak_mb=350.0,
            cpu_usage_percent=15.2,
            messages_per_minute=1250,
            error_rate_last_hour=0.001,
            consumer_lag=lag,
        )