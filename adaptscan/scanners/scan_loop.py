"""
Drives one shard through the probe engine's scan loop.
"""

import logging
import time
from typing import Any, Optional

from colorama import Fore, Style

from adaptscan.common.config import ScanConfiguration
from adaptscan.common.logger import setup_logger
from adaptscan.core.models import ShardResult, TargetShard, TimeoutProfile
from adaptscan.core.progress import ProgressListener, ProgressTrigger
from adaptscan.core.strategy import NoOpStrategy, ScanStrategy
from adaptscan.core.tuner import tune
from adaptscan.engine.base import ProbeEngine, ScanHandle

setup_logger()
logger = logging.getLogger(__name__)


class ScanLoopDriver:
    """
    Runs the ping / retransmit / probe / wait / process cycle for one shard.

    Attributes:
        engine (ProbeEngine): Engine providing the scan primitives
        config (ScanConfiguration): Session configuration
        strategy (ScanStrategy): Per-target hooks run around the loop
        progress (ProgressTrigger): Each run polls its own listener once per iteration
    """

    def __init__(
        self,
        engine: ProbeEngine,
        config: ScanConfiguration,
        strategy: Optional[ScanStrategy] = None,
        progress: Optional[ProgressTrigger] = None,
    ):
        self.engine = engine
        self.config = config
        self.strategy = strategy or NoOpStrategy()
        self.progress = progress

    def run(
        self,
        shard: TargetShard,
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: TimeoutProfile,
    ) -> ShardResult:
        """
        Scan a shard until the engine reports no incomplete hosts.

        Args:
            shard: Targets to scan
            port_spec: Port specification passed to the engine
            scan_mode: Scan type passed to the engine
            timeout_profile: This shard's copy of the session timeout profile

        Returns:
            ShardResult: The engine-refined timeout profile and probe counts
        """
        started_at = time.perf_counter()
        targets = list(shard.targets)
        logger.debug(f"Shard {shard.index}: scanning {len(targets)} target(s)")

        if self.config.batch_processing:
            self.strategy.preprocess(targets, port_spec)

        handle = self.engine.create_scan(targets, port_spec, scan_mode)
        handle.timeout_profile = timeout_profile
        self._apply_tuning(shard, handle)

        if self.engine.is_raw_scan(handle):
            self.engine.begin_sniffer(handle, targets)

        listener = self.progress.listener() if self.progress is not None else None
        iterations = 0
        while self.engine.incomplete_hosts_remain(handle):
            self._run_iteration(handle)
            iterations += 1
            self._report_progress(shard, handle, listener)

        if self.config.batch_processing:
            self.strategy.postprocess(targets)

        result = ShardResult(
            shard=shard,
            timeout_profile=handle.timeout_profile,
            stats=self.engine.probe_stats(handle),
            started_at=started_at,
            finished_at=time.perf_counter(),
            iterations=iterations,
        )
        logger.debug(
            f"Shard {shard.index}: completed after {iterations} iteration(s) "
            f"in {result.duration:.3f}s"
        )
        return result

    def _apply_tuning(self, shard: TargetShard, handle: ScanHandle) -> None:
        tuning = tune(handle.estimated_probe_count, handle.timeout_profile, handle.congestion)
        congestion = tuning.congestion
        if self.config.smart_retry:
            congestion = self.strategy.adjust_retries(congestion)

        handle.timeout_profile = tuning.timeout_profile
        handle.congestion = congestion

        logger.info(
            f"Shard {shard.index}: {tuning.workload} scan "
            f"({handle.estimated_probe_count} probes) - Max CWND: {congestion.max_cwnd}, "
            f"Host CWND: {congestion.host_initial_cwnd}, "
            f"Timeout: {handle.timeout_profile.timeout}us"
        )

    def _run_iteration(self, handle: ScanHandle) -> None:
        self.engine.do_any_pings(handle)
        self.engine.do_any_outstanding_retransmits(handle)
        self.engine.do_any_retry_stack_retransmits(handle)
        self.engine.do_any_new_probes(handle)
        self.engine.wait_for_responses(handle)
        self.engine.process_data(handle)

    def _report_progress(
        self, shard: TargetShard, handle: ScanHandle, listener: Optional[ProgressListener]
    ) -> None:
        if listener is None or not listener.poll():
            return

        fraction = self.engine.completion_fraction(handle)
        logger.info(
            f"{Fore.CYAN}Shard {shard.index}: {fraction * 100:.2f}% done{Style.RESET_ALL}"
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Shard {shard.index}: current rate {self.engine.current_rate(handle):.2f} probes/sec"
            )
