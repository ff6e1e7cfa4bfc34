"""
Value types shared by the adaptive scan components.

All durations are integer microseconds.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class TimeoutProfile:
    """
    Round-trip timing state used to size probe timeouts.

    Attributes:
        srtt (int): Smoothed round-trip time estimate
        rttvar (int): Round-trip time variance
        timeout (int): Timeout ceiling for a single wait
    """

    srtt: int
    rttvar: int
    timeout: int

    def __post_init__(self):
        for name in ("srtt", "rttvar", "timeout"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")


DEFAULT_TIMEOUT_PROFILE = TimeoutProfile(srtt=20000, rttvar=10000, timeout=40000)


@dataclass(frozen=True)
class CongestionParams:
    """
    Congestion control parameters of an engine scan.

    Attributes:
        max_cwnd (int): Upper bound of the global congestion window
        host_initial_cwnd (int): Initial per-host congestion window
        slow_incr (int): Window growth per response during slow start
        ca_incr (int): Window growth per response during congestion avoidance
    """

    max_cwnd: int
    host_initial_cwnd: int
    slow_incr: int
    ca_incr: int


@dataclass(frozen=True)
class ProbeStats:
    """Raw probe counts reported by the engine for one scan."""

    probes_sent: int = 0
    responses_received: int = 0
    timeouts: int = 0
    errors: int = 0


@dataclass(frozen=True)
class TargetShard:
    """An ordered, non-empty slice of the target list handled by one worker."""

    index: int
    targets: Tuple[Any, ...]

    def __len__(self):
        return len(self.targets)

    def __iter__(self):
        return iter(self.targets)


@dataclass
class ShardResult:
    """
    Outcome of driving one shard through the engine scan loop.

    Attributes:
        shard (TargetShard): The shard that was scanned
        timeout_profile (TimeoutProfile): Final profile as refined by the engine
        stats (ProbeStats): Engine probe counts for the shard
        started_at (float): Monotonic start time
        finished_at (float): Monotonic finish time
        iterations (int): Number of scan loop iterations
        sequence (int): Completion order assigned by the dispatcher (1 = first)
    """

    shard: TargetShard
    timeout_profile: TimeoutProfile
    stats: ProbeStats
    started_at: float
    finished_at: float
    iterations: int = 0
    sequence: int = 0

    @property
    def duration(self) -> float:
        return max(0.0, self.finished_at - self.started_at)


@dataclass
class ScanSession:
    """
    State of one adaptive scan session.

    The monitor carries the start/stop timestamps and the telemetry counters.
    """

    config: Any
    monitor: Any
    timeout_profile: Optional[TimeoutProfile] = None
    shard_results: List[ShardResult] = field(default_factory=list)
    report: Any = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def started_at(self) -> Optional[datetime]:
        return self.monitor.started_at

    @property
    def stopped_at(self) -> Optional[datetime]:
        return self.monitor.stopped_at

    @property
    def counters(self):
        return self.monitor.counters
