"""
Runtime telemetry for adaptive scan sessions.

Counters are updated concurrently by the shard workers; each counter guards
its own value so no lock is ever held over the whole counter set.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pandas as pd

from adaptscan.common.logger import setup_logger
from adaptscan.core.models import ProbeStats, ShardResult

setup_logger()
logger = logging.getLogger(__name__)

SHARD_COLUMNS = [
    "shard",
    "hosts",
    "probes_sent",
    "responses_received",
    "timeouts",
    "errors",
    "iterations",
    "duration_s",
]


class AtomicCounter:
    """Monotonic integer counter safe to increment from several threads."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        if amount < 0:
            raise ValueError("counters only increase")
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        return self._value


class TelemetryCounters:
    """Probe counters for one scan session."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.probes_sent = AtomicCounter()
        self.responses_received = AtomicCounter()
        self.timeouts = AtomicCounter()
        self.errors = AtomicCounter()

    def add(self, stats: ProbeStats) -> None:
        self.probes_sent.increment(stats.probes_sent)
        self.responses_received.increment(stats.responses_received)
        self.timeouts.increment(stats.timeouts)
        self.errors.increment(stats.errors)

    def snapshot(self) -> ProbeStats:
        return ProbeStats(
            probes_sent=self.probes_sent.value,
            responses_received=self.responses_received.value,
            timeouts=self.timeouts.value,
            errors=self.errors.value,
        )


def success_rate(responses: int, probes: int) -> float:
    """Percentage of probes that got a response; 0 when nothing was sent."""
    if probes <= 0:
        return 0.0
    return responses / probes * 100


def throughput(probes: int, duration_seconds: float) -> float:
    """Probes per second; 0 when no time has elapsed."""
    if duration_seconds <= 0:
        return 0.0
    return probes / duration_seconds


@dataclass(frozen=True)
class PerformanceReport:
    """
    Summary of a monitored scan session.

    Attributes:
        duration_ms (int): Session wall time in milliseconds
        probes_sent (int): Probes sent across all shards
        responses_received (int): Responses received across all shards
        timeouts (int): Probes that timed out
        errors (int): Probe errors
        success_rate (float): responses / probes * 100
        throughput (float): Probes per second
        shards (pd.DataFrame): Per-shard breakdown, may be empty
    """

    duration_ms: int
    probes_sent: int
    responses_received: int
    timeouts: int
    errors: int
    success_rate: float
    throughput: float
    shards: Optional[pd.DataFrame] = None

    def to_text(self) -> str:
        lines = [
            "=== Performance Report ===",
            f"Scan duration: {self.duration_ms}ms",
            f"Probes sent: {self.probes_sent}",
            f"Responses received: {self.responses_received}",
            f"Timeouts: {self.timeouts}",
            f"Errors: {self.errors}",
            f"Success rate: {self.success_rate:.2f}%",
            f"Throughput: {self.throughput:.2f} probes/sec",
        ]
        if self.shards is not None and len(self.shards) > 1:
            lines.append("--- Shards ---")
            lines.append(self.shards.to_string(index=False))
        lines.append("==========================")
        return "\n".join(lines)


class PerformanceMonitor:
    """
    Session timer and telemetry aggregator.

    Attributes:
        counters (TelemetryCounters): Session probe counters
        started_at (datetime): Wall-clock start, None until start() is called
        stopped_at (datetime): Wall-clock stop, None until stop() is called
    """

    def __init__(self):
        self.counters = TelemetryCounters()
        self.started_at: Optional[datetime] = None
        self.stopped_at: Optional[datetime] = None
        self._start_clock: Optional[float] = None
        self._stop_clock: Optional[float] = None
        self._shard_rows = []

    def start(self) -> None:
        self.counters.reset()
        self._shard_rows = []
        self.started_at = datetime.now()
        self._start_clock = time.perf_counter()
        self.stopped_at = None
        self._stop_clock = None
        logger.info("Performance monitoring started")

    def stop(self) -> None:
        self.stopped_at = datetime.now()
        self._stop_clock = time.perf_counter()
        logger.info("Performance monitoring stopped")

    @property
    def duration(self) -> float:
        """Elapsed seconds between start() and stop(), 0.0 if either is missing."""
        if self._start_clock is None or self._stop_clock is None:
            return 0.0
        return max(0.0, self._stop_clock - self._start_clock)

    def record_shard(self, result: ShardResult) -> None:
        """Merge a finished shard's probe counts into the session."""
        self.counters.add(result.stats)
        self._shard_rows.append(
            {
                "shard": result.shard.index,
                "hosts": len(result.shard),
                "probes_sent": result.stats.probes_sent,
                "responses_received": result.stats.responses_received,
                "timeouts": result.stats.timeouts,
                "errors": result.stats.errors,
                "iterations": result.iterations,
                "duration_s": round(result.duration, 3),
            }
        )

    def shard_frame(self) -> pd.DataFrame:
        if not self._shard_rows:
            return pd.DataFrame(columns=SHARD_COLUMNS)
        return (
            pd.DataFrame(list(self._shard_rows), columns=SHARD_COLUMNS)
            .sort_values("shard")
            .reset_index(drop=True)
        )

    def report(self) -> PerformanceReport:
        totals = self.counters.snapshot()
        seconds = self.duration
        return PerformanceReport(
            duration_ms=int(seconds * 1000),
            probes_sent=totals.probes_sent,
            responses_received=totals.responses_received,
            timeouts=totals.timeouts,
            errors=totals.errors,
            success_rate=success_rate(totals.responses_received, totals.probes_sent),
            throughput=throughput(totals.probes_sent, seconds),
            shards=self.shard_frame(),
        )

    def format_report(self) -> str:
        return self.report().to_text()
