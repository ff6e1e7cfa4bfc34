"""
Entry point of the adaptive scan layer.

AdaptiveScanOrchestrator either hands a scan to the engine's baseline path
unchanged, or runs the adaptive path: aggressive timeout seed, partitioning,
concurrent shard dispatch and a performance report.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Optional, Sequence

from colorama import Fore, Style

from adaptscan.common.config import ScanConfiguration, log_config
from adaptscan.common.logger import setup_logger
from adaptscan.core.models import DEFAULT_TIMEOUT_PROFILE, ScanSession, TimeoutProfile
from adaptscan.core.partitioner import partition_targets
from adaptscan.core.progress import ProgressTrigger
from adaptscan.core.strategy import ScanStrategy
from adaptscan.core.telemetry import PerformanceMonitor
from adaptscan.core.tuner import apply_aggressive_timeouts
from adaptscan.engine.base import ProbeEngine
from adaptscan.scanners.dispatcher import WorkerDispatcher

setup_logger()
logger = logging.getLogger(__name__)


class AdaptiveScanOrchestrator:
    """
    Decides between the baseline and the adaptive scan and wires the
    adaptive components together.

    Attributes:
        engine (ProbeEngine): Probe engine used by both paths
        config (ScanConfiguration): Configuration snapshotted at each session start
        strategy (ScanStrategy): Per-target hooks, NoOpStrategy when None
        progress (ProgressTrigger): Trigger polled by the scan loops
        last_session (ScanSession): The most recent adaptive session, if any
    """

    def __init__(
        self,
        engine: ProbeEngine,
        config: Optional[ScanConfiguration] = None,
        strategy: Optional[ScanStrategy] = None,
        progress: Optional[ProgressTrigger] = None,
    ):
        self.engine = engine
        self.config = config if config is not None else ScanConfiguration()
        self.strategy = strategy
        self.progress = progress
        self.last_session: Optional[ScanSession] = None

    def set_enabled(self, enabled: bool) -> None:
        self.config.set_enabled(enabled)

    def set_worker_count(self, workers: int) -> None:
        self.config.set_worker_count(workers)

    def set_adaptive_timeout_factor(self, factor: float) -> None:
        self.config.set_adaptive_timeout_factor(factor)

    async def run(
        self,
        targets: Sequence[Any],
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: Optional[TimeoutProfile] = None,
    ) -> Optional[TimeoutProfile]:
        """
        Scan targets with the adaptive path when enabled, else the baseline.

        Args:
            targets: Targets to scan
            port_spec: Port specification passed to the engine
            scan_mode: Scan type passed to the engine
            timeout_profile: Caller timing state, defaults are used when None

        Returns:
            TimeoutProfile: Final timing state of the scan
        """
        if not self.config.enabled:
            return self.run_baseline(targets, port_spec, scan_mode, timeout_profile)
        return await self.run_adaptive(targets, port_spec, scan_mode, timeout_profile)

    def run_baseline(
        self,
        targets: Sequence[Any],
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: Optional[TimeoutProfile] = None,
    ) -> Optional[TimeoutProfile]:
        """Delegate to the engine's own scan with the caller's timeout profile."""
        logger.info("Adaptive mode not enabled, using baseline scan")
        final_profile = self.engine.baseline_scan(
            list(targets or []), port_spec, scan_mode, timeout_profile
        )
        return final_profile if final_profile is not None else timeout_profile

    async def run_adaptive(
        self,
        targets: Sequence[Any],
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: Optional[TimeoutProfile] = None,
    ) -> TimeoutProfile:
        """
        Run an adaptive scan session.

        Args:
            targets: Targets to scan
            port_spec: Port specification passed to the engine
            scan_mode: Scan type passed to the engine
            timeout_profile: Seed timing state, defaults are used when None

        Returns:
            TimeoutProfile: Profile merged from the shards after all have finished
        """
        config = replace(self.config)
        monitor = PerformanceMonitor()
        session = ScanSession(config=config, monitor=monitor)
        self.last_session = session

        if config.performance_monitoring:
            monitor.start()

        log_config(config)
        logger.info(
            f"{Fore.CYAN}Using adaptive scan mode, parallel workers: "
            f"{config.worker_count}{Style.RESET_ALL}"
        )

        seed = timeout_profile if timeout_profile is not None else DEFAULT_TIMEOUT_PROFILE
        session.timeout_profile = apply_aggressive_timeouts(seed)
        logger.info(
            f"Adaptive timeout settings - SRTT: {session.timeout_profile.srtt}us, "
            f"Timeout: {session.timeout_profile.timeout}us"
        )

        shards = partition_targets(targets, config.worker_count)
        dispatcher = WorkerDispatcher(
            self.engine, config, monitor, strategy=self.strategy, progress=self.progress
        )
        session.timeout_profile = await dispatcher.dispatch(
            shards, port_spec, scan_mode, session.timeout_profile
        )
        session.shard_results = dispatcher.results

        logger.info(f"{Fore.GREEN}Adaptive scan completed{Style.RESET_ALL}")

        if config.performance_monitoring:
            monitor.stop()
            session.report = monitor.report()
            logger.info("\n" + session.report.to_text())

        return session.timeout_profile

    def performance_report(self) -> str:
        """Plain-text performance report of the last monitored session."""
        if self.last_session is not None and self.last_session.report is not None:
            return self.last_session.report.to_text()
        return PerformanceMonitor().format_report()


def run_adaptive_scan(
    engine: ProbeEngine,
    targets: Sequence[Any],
    port_spec: Any,
    scan_mode: Any,
    timeout_profile: Optional[TimeoutProfile] = None,
    config: Optional[ScanConfiguration] = None,
) -> Optional[TimeoutProfile]:
    """
    Run a scan from synchronous code.

    Returns:
        TimeoutProfile: Final timing state of the scan
    """
    orchestrator = AdaptiveScanOrchestrator(engine, config=config)
    return asyncio.run(orchestrator.run(targets, port_spec, scan_mode, timeout_profile))
