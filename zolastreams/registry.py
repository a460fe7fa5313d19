"""In-process metrics registry with counters, gauges, histograms and DEX trade metrics."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal


@dataclass
class HistogramData:
    """Raw samples recorded for one histogram."""

    values: list[float] = field(default_factory=list)
    count: int = 0
    sum: float = 0.0

    def add(self, value: float) -> None:
        self.values.append(value)
        self.count += 1
        self.sum += value


@dataclass
class NetworkMetrics:
    """Network throughput per second."""

    bytes_in_per_sec: float
    bytes_out_per_sec: float
    packets_in_per_sec: float
    packets_out_per_sec: float


@dataclass
class MemoryMetrics:
    """Memory and garbage-collection figures."""

    used_mb: float
    peak_mb: float
    gc_count: int
    gc_total_time_ms: float


@dataclass
class ProcessMetrics:
    """Process-level figures."""

    uptime_seconds: int
    thread_count: int
    fd_count: int
    memory: MemoryMetrics


@dataclass
class SystemMetrics:
    """Snapshot of system-level metrics."""

    cpu_usage: float
    memory_usage_mb: float
    network_io: NetworkMetrics
    process: ProcessMetrics


@dataclass
class TradingPairMetrics:
    """Aggregates for one trading pair."""

    pair: str
    trades: int
    volume_usd: float
    avg_price: float
    price_change_24h: float


@dataclass
class DexProgramMetrics:
    """Aggregates for one DEX program."""

    program_id: str
    name: str
    trades: int
    volume_usd: float
    market_share: float


@dataclass
class BusinessMetrics:
    """Aggregated business view of trading activity."""

    trading_pairs: list[TradingPairMetrics]
    dex_programs: list[DexProgramMetrics]
    total_trades: int
    total_volume_usd: float
    active_users: int
    unique_wallets: int


@dataclass
class PerformanceMetrics:
    """Percentile summary of a histogram."""

    p50: float
    p90: float
    p95: float
    p99: float
    max: float
    avg: float


def percentile(sorted_values: list[float], p: float) -> float:
    """Value at fraction ``p`` of already sorted values, using a floored index."""
    if not sorted_values:
        return 0.0
    index = int(p * (len(sorted_values) - 1))
    if 0 <= index < len(sorted_values):
        return sorted_values[index]
    return 0.0


def _format_number(value: float) -> str:
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "inf" if value > 0 else "-inf"
    if float(value).is_integer():
        return str(int(value))
    return format(Decimal(repr(float(value))), "f")


class MetricsRegistry:
    """Thread-safe store of named counters, gauges and histograms."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, int] = {}
        self._histograms: dict[str, HistogramData] = {}

    def increment_counter(self, name: str, value: int) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def set_gauge(self, name: str, value: int) -> None:
        with self._lock:
            self._gauges[name] = int(value)

    def record_histogram(self, name: str, value: float) -> None:
        with self._lock:
            self._histograms.setdefault(name, HistogramData()).add(value)

    def get_counter(self, name: str) -> int:
        """Counter value, or 0 if it was never incremented."""
        with self._lock:
            return self._counters.get(name, 0)

    def get_gauge(self, name: str) -> int:
        """Gauge value, or 0 if it was never set."""
        with self._lock:
            return self._gauges.get(name, 0)

    def get_histogram_stats(self, name: str) -> PerformanceMetrics | None:
        """Percentile summary, or None if the histogram has no samples."""
        with self._lock:
            data = self._histograms.get(name)
            if data is None or not data.values:
                return None
            sorted_values = sorted(data.values)
            total, count = data.sum, data.count
        return PerformanceMetrics(
            p50=percentile(sorted_values, 0.5),
            p90=percentile(sorted_values, 0.9),
            p95=percentile(sorted_values, 0.95),
            p99=percentile(sorted_values, 0.99),
            max=sorted_values[-1],
            avg=total / count,
        )

    def export_prometheus(self) -> str:
        """Render all metrics in the Prometheus text exposition format."""
        lines: list[str] = []
        with self._lock:
            for name, value in self._counters.items():
                lines.append(f"# TYPE {name} counter")
                lines.append(f"{name} {value}")
            for name, value in self._gauges.items():
                lines.append(f"# TYPE {name} gauge")
                lines.append(f"{name} {value}")
            for name, data in self._histograms.items():
                lines.append(f"# TYPE {name} histogram")
                lines.append(f"{name}_count {data.count}")
                lines.append(f"{name}_sum {_format_number(data.sum)}")
        return "".join(line + "\n" for line in lines)

    def get_system_metrics(self) -> SystemMetrics:
        """Build a system snapshot from the well-known gauge and counter names."""
        return SystemMetrics(
            cpu_usage=float(self.get_gauge("cpu_usage_percent")),
            memory_usage_mb=float(self.get_gauge("memory_usage_mb")),
            network_io=NetworkMetrics(
                bytes_in_per_sec=float(self.get_gauge("network_bytes_in_per_sec")),
                bytes_out_per_sec=float(self.get_gauge("network_bytes_out_per_sec")),
                packets_in_per_sec=float(self.get_gauge("network_packets_in_per_sec")),
                packets_out_per_sec=float(self.get_gauge("network_packets_out_per_sec")),
            ),
            process=ProcessMetrics(
                uptime_seconds=self.get_counter("process_uptime_seconds"),
                thread_count=self.get_gauge("process_thread_count") & 0xFFFFFFFF,
                fd_count=self.get_gauge("process_fd_count") & 0xFFFFFFFF,
                memory=MemoryMetrics(
                    used_mb=float(self.get_gauge("jvm_memory_used_mb")),
                    peak_mb=float(self.get_gauge("jvm_memory_peak_mb")),
                    gc_count=self.get_counter("jvm_gc_count"),
                    gc_total_time_ms=float(self.get_gauge("jvm_gc_total_time_ms")),
                ),
            ),
        )


class DexMetricsCollector:
    """Records DEX trading activity into a shared registry."""

    def __init__(self, registry: MetricsRegistry) -> None:
        self.registry = registry
        self._start = time.monotonic()

    def record_trade(self, pair: str, price: float, volume: float) -> None:
        self.registry.increment_counter("trades_total", 1)
        self.registry.record_histogram("trade_size_usd", volume)
        self.registry.record_histogram("trade_price", price)
        self.registry.increment_counter(f"trades_total_pair_{pair}", 1)
        self.registry.set_gauge(f"volume_usd_pair_{pair}", int(volume))

    def record_dex_interaction(self, program_id: str, instruction_type: str) -> None:
        self.registry.increment_counter(
            f"dex_instructions_{program_id}_{instruction_type}", 1
        )

    def record_processing_latency(self, operation: str, duration: timedelta | float) -> None:
        """Record a latency, given as a timedelta or in seconds, in whole milliseconds."""
        if isinstance(duration, timedelta):
            millis = duration // timedelta(milliseconds=1)
        else:
            millis = int(duration * 1000)
        self.registry.record_histogram(f"processing_latency_{operation}", float(millis))

    def record_user_activity(self, wallet_address: str) -> None:
        self.registry.increment_counter("unique_users_total", 1)
        self.registry.set_gauge(f"daily_active_users_{wallet_address}", 1)

    def get_business_metrics(self) -> BusinessMetrics:
        """Business summary; trade counts are live, other figures are fixed samples."""
        return BusinessMetrics(
            trading_pairs=[
                TradingPairMetrics(
                    pair="SOL/USDC",
                    trades=self.registry.get_counter("trades_total_pair_SOL/USDC"),
                    volume_usd=1_250_000.0,
                    avg_price=89.45,
                    price_change_24h=3.2,
                ),
                TradingPairMetrics(
                    pair="ETH/SOL",
                    trades=self.registry.get_counter("trades_total_pair_ETH/SOL"),
                    volume_usd=890_000.0,
                    avg_price=25.8,
                    price_change_24h=-1.8,
                ),
            ],
            dex_programs=[
                DexProgramMetrics(
                    program_id="675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
                    name="Raydium",
                    trades=15420,
                    volume_usd=980_000.0,
                    market_share=45.8,
                ),
                DexProgramMetrics(
                    program_id="9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",
                    name="Orca",
                    trades=8930,
                    volume_usd=620_000.0,
                    market_share=28.9,
                ),
            ],
            total_trades=self.registry.get_counter("trades_total"),
            total_volume_usd=2_140_000.0,
            active_users=1250,
            unique_wallets=3400,
        )

    def update_system_metrics(self) -> None:
        """Store a set of sample system figures and the current uptime."""
        registry = self.registry
        registry.set_gauge("cpu_usage_percent", int(45.2))
        registry.set_gauge("memory_usage_mb", int(1024.0))
        registry.increment_counter(
            "process_uptime_seconds", int(time.monotonic() - self._start)
        )
        registry.set_gauge("network_bytes_in_per_sec", 150_000)
        registry.set_gauge("network_bytes_out_per_sec", 89_000)
        registry.set_gauge("network_packets_in_per_sec", 450)
        registry.set_gauge("network_packets_out_per_sec", 320)
        registry.set_gauge("process_thread_count", 12)
        registry.set_gauge("process_fd_count", 128)
        registry.set_gauge("jvm_memory_used_mb", 512)
        registry.set_gauge("jvm_memory_peak_mb", 768)
        registry.increment_counter("jvm_gc_count", 1)
        registry.set_gauge("jvm_gc_total_time_ms", 45)