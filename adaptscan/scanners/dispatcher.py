"""
Concurrent dispatch of shards to scan loop drivers.

A single shard runs inline. Several shards each get a worker thread, bounded
by the configured worker count, and are joined before the session continues.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Sequence

from adaptscan.common.config import (
    MERGE_AVERAGE,
    MERGE_DISCARD,
    MERGE_LAST,
    ScanConfiguration,
)
from adaptscan.common.logger import setup_logger
from adaptscan.core.models import ShardResult, TargetShard, TimeoutProfile
from adaptscan.core.progress import ProgressTrigger
from adaptscan.core.strategy import ScanStrategy
from adaptscan.core.telemetry import AtomicCounter, PerformanceMonitor
from adaptscan.engine.base import ProbeEngine
from adaptscan.scanners.scan_loop import ScanLoopDriver

setup_logger()
logger = logging.getLogger(__name__)


def merge_timeout_profiles(
    results: Sequence[ShardResult], seed: TimeoutProfile, policy: str = MERGE_LAST
) -> TimeoutProfile:
    """
    Pick the caller-visible timeout profile once all shards have finished.

    Args:
        results: Finished shards
        seed: Profile every shard started from
        policy: "last" (latest completion), "average" or "discard" (keep seed)

    Returns:
        TimeoutProfile: The merged profile
    """
    if not results or policy == MERGE_DISCARD:
        return seed

    if policy == MERGE_LAST:
        return max(results, key=lambda result: result.sequence).timeout_profile

    if policy == MERGE_AVERAGE:
        count = len(results)
        return TimeoutProfile(
            srtt=sum(r.timeout_profile.srtt for r in results) // count,
            rttvar=sum(r.timeout_profile.rttvar for r in results) // count,
            timeout=sum(r.timeout_profile.timeout for r in results) // count,
        )

    raise ValueError(f"Unknown timeout merge policy: {policy}")


class WorkerDispatcher:
    """
    Runs one ScanLoopDriver per shard and merges their telemetry.

    Attributes:
        engine (ProbeEngine): Engine shared by all drivers
        config (ScanConfiguration): Session configuration
        monitor (PerformanceMonitor): Receives each shard's probe counts
        results (List[ShardResult]): Finished shards, in shard order, after dispatch
    """

    def __init__(
        self,
        engine: ProbeEngine,
        config: ScanConfiguration,
        monitor: PerformanceMonitor,
        strategy: Optional[ScanStrategy] = None,
        progress: Optional[ProgressTrigger] = None,
    ):
        self.engine = engine
        self.config = config
        self.monitor = monitor
        self.strategy = strategy
        self.progress = progress
        self.results: List[ShardResult] = []
        self._completed = AtomicCounter()

    async def dispatch(
        self,
        shards: Sequence[TargetShard],
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: TimeoutProfile,
    ) -> TimeoutProfile:
        """
        Scan every shard and return the merged timeout profile.

        Args:
            shards: Shards to scan
            port_spec: Port specification passed to the engine
            scan_mode: Scan type passed to the engine
            timeout_profile: Tuned profile each shard starts from

        Returns:
            TimeoutProfile: Profile chosen by the configured merge policy
        """
        if not shards:
            logger.info("No targets to scan")
            return timeout_profile

        if len(shards) == 1:
            logger.info(f"Executing single-shard scan for {len(shards[0])} target(s)")
            results = [self._run_shard(shards[0], port_spec, scan_mode, timeout_profile)]
        else:
            results = await self._run_parallel(shards, port_spec, scan_mode, timeout_profile)

        self.results = sorted(results, key=lambda result: result.shard.index)
        return merge_timeout_profiles(self.results, timeout_profile, self.config.timeout_merge)

    async def _run_parallel(
        self,
        shards: Sequence[TargetShard],
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: TimeoutProfile,
    ) -> List[ShardResult]:
        workers = self.config.worker_count
        total_targets = sum(len(shard) for shard in shards)
        logger.info(
            f"Executing parallel scan for {total_targets} targets "
            f"in {len(shards)} shards, {workers} workers"
        )

        semaphore = asyncio.Semaphore(workers)
        failed = asyncio.Event()
        loop = asyncio.get_running_loop()

        # leaving this block joins shard threads still inside the engine and blocks
        # the event loop until they return; the loop serves only this session
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="adaptscan-shard"
        ) as executor:

            async def run_unit(shard: TargetShard) -> Optional[ShardResult]:
                async with semaphore:
                    # set before the semaphore is released to the next waiting unit;
                    # gather has already failed, so nothing reads this result
                    if failed.is_set():
                        return None
                    try:
                        return await loop.run_in_executor(
                            executor,
                            self._run_shard,
                            shard,
                            port_spec,
                            scan_mode,
                            timeout_profile,
                        )
                    except Exception:
                        failed.set()
                        raise

            tasks = [asyncio.ensure_future(run_unit(shard)) for shard in shards]
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                failed.set()
                for task in tasks:
                    task.cancel()
                logger.error(
                    f"Parallel scan aborted, {self._completed.value} of {len(shards)} shards completed"
                )
                raise

        logger.info("Parallel scan completed")
        return list(results)

    def _run_shard(
        self,
        shard: TargetShard,
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: TimeoutProfile,
    ) -> ShardResult:
        driver = ScanLoopDriver(self.engine, self.config, self.strategy, self.progress)
        result = driver.run(shard, port_spec, scan_mode, timeout_profile)
        result.sequence = self._completed.increment()
        self.monitor.record_shard(result)
        return result
