"""
Workload tuning, target partitioning and telemetry for adaptive scans.
"""

from adaptscan.core.models import (
    DEFAULT_TIMEOUT_PROFILE,
    CongestionParams,
    ProbeStats,
    ScanSession,
    ShardResult,
    TargetShard,
    TimeoutProfile,
)
from adaptscan.core.partitioner import partition_targets
from adaptscan.core.telemetry import PerformanceMonitor, PerformanceReport
from adaptscan.core.tuner import apply_aggressive_timeouts, tune

__all__ = [
    "DEFAULT_TIMEOUT_PROFILE",
    "CongestionParams",
    "ProbeStats",
    "ScanSession",
    "ShardResult",
    "TargetShard",
    "TimeoutProfile",
    "partition_targets",
    "PerformanceMonitor",
    "PerformanceReport",
    "apply_aggressive_timeouts",
    "tune",
]
