"""
Timeout and congestion tuning by workload size.

Two passes, both pure functions of their inputs:

1. apply_aggressive_timeouts: a fixed-factor cut of the seed timeout profile,
   run once per adaptive session before any shard starts.
2. tune: classifies the workload by its estimated probe count and scales the
   congestion window, growth increments and timeouts, with caps and floors.
"""

import logging
from dataclasses import dataclass

from adaptscan.common.logger import setup_logger
from adaptscan.core.models import CongestionParams, TimeoutProfile

setup_logger()
logger = logging.getLogger(__name__)

LARGE_SCAN_THRESHOLD = 1000
AGGRESSIVE_TIMEOUT_FACTOR = 0.4


@dataclass(frozen=True)
class TuningProfile:
    """Scaling factors, caps and floors applied to one workload class."""

    name: str
    cwnd_factor: float
    max_cwnd_cap: int
    host_cwnd_cap: int
    incr_factor: float
    timeout_factor: float
    timeout_floor: int
    srtt_factor: float
    srtt_floor: int


LARGE_SCAN = TuningProfile(
    name="large",
    cwnd_factor=2.0,
    max_cwnd_cap=1000,
    host_cwnd_cap=100,
    incr_factor=2.0,
    timeout_factor=0.6,
    timeout_floor=15000,
    srtt_factor=0.6,
    srtt_floor=8000,
)

SMALL_SCAN = TuningProfile(
    name="small",
    cwnd_factor=1.3,
    max_cwnd_cap=500,
    host_cwnd_cap=25,
    incr_factor=1.2,
    timeout_factor=0.85,
    timeout_floor=22000,
    srtt_factor=0.85,
    srtt_floor=12000,
)


@dataclass(frozen=True)
class TuningResult:
    workload: str
    timeout_profile: TimeoutProfile
    congestion: CongestionParams


def apply_aggressive_timeouts(
    profile: TimeoutProfile, factor: float = AGGRESSIVE_TIMEOUT_FACTOR
) -> TimeoutProfile:
    """
    Scale the timeout ceiling and smoothed RTT of a seed profile.

    The variance is left as is. The input profile is not modified.

    Args:
        profile: Seed timeout profile
        factor: Multiplier for timeout and srtt

    Returns:
        TimeoutProfile: The scaled profile
    """
    scaled = TimeoutProfile(
        srtt=int(profile.srtt * factor),
        rttvar=profile.rttvar,
        timeout=int(profile.timeout * factor),
    )
    logger.debug(f"Applied aggressive timeouts - factor: {factor}")
    return scaled


def classify_workload(estimated_probe_count: int) -> TuningProfile:
    if estimated_probe_count > LARGE_SCAN_THRESHOLD:
        return LARGE_SCAN
    return SMALL_SCAN


def tune(
    estimated_probe_count: int,
    timeout_profile: TimeoutProfile,
    congestion: CongestionParams,
) -> TuningResult:
    """
    Compute tuned timeout and congestion parameters for a workload.

    Args:
        estimated_probe_count: Number of probes the engine expects to send
        timeout_profile: Timeout profile to start from
        congestion: Congestion parameters to start from

    Returns:
        TuningResult: Workload class and the tuned parameters
    """
    profile = classify_workload(estimated_probe_count)

    tuned_congestion = CongestionParams(
        max_cwnd=min(int(congestion.max_cwnd * profile.cwnd_factor), profile.max_cwnd_cap),
        host_initial_cwnd=min(
            int(congestion.host_initial_cwnd * profile.cwnd_factor), profile.host_cwnd_cap
        ),
        slow_incr=max(int(congestion.slow_incr * profile.incr_factor), 1),
        ca_incr=max(int(congestion.ca_incr * profile.incr_factor), 1),
    )
    tuned_timeouts = TimeoutProfile(
        srtt=max(int(timeout_profile.srtt * profile.srtt_factor), profile.srtt_floor),
        rttvar=timeout_profile.rttvar,
        timeout=max(
            int(timeout_profile.timeout * profile.timeout_factor), profile.timeout_floor
        ),
    )

    return TuningResult(
        workload=profile.name,
        timeout_profile=tuned_timeouts,
        congestion=tuned_congestion,
    )
