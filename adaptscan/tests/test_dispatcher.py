import asyncio
import threading
import unittest
from unittest.mock import patch

from adaptscan.common.config import ScanConfiguration
from adaptscan.core.models import ProbeStats, ShardResult, TargetShard, TimeoutProfile
from adaptscan.core.partitioner import partition_targets
from adaptscan.core.progress import ProgressTrigger
from adaptscan.core.telemetry import PerformanceMonitor
from adaptscan.scanners.dispatcher import WorkerDispatcher, merge_timeout_profiles
from adaptscan.tests.fakes import FakeProbeEngine

SEED = TimeoutProfile(srtt=8000, rttvar=10000, timeout=16000)


def shard_result(index, sequence, timeout):
    return ShardResult(
        shard=TargetShard(index=index, targets=(index,)),
        timeout_profile=TimeoutProfile(srtt=timeout // 2, rttvar=1000 * index, timeout=timeout),
        stats=ProbeStats(),
        started_at=0.0,
        finished_at=1.0,
        sequence=sequence,
    )


class TestMergeTimeoutProfiles(unittest.TestCase):
    """Test the merge policies for shard timeout profiles."""

    def setUp(self):
        self.results = [
            shard_result(0, sequence=2, timeout=30000),
            shard_result(1, sequence=3, timeout=20000),
            shard_result(2, sequence=1, timeout=40000),
        ]

    def test_last_finished_wins(self):
        merged = merge_timeout_profiles(self.results, SEED, "last")
        self.assertEqual(merged, self.results[1].timeout_profile)

    def test_average(self):
        merged = merge_timeout_profiles(self.results, SEED, "average")
        self.assertEqual(merged, TimeoutProfile(srtt=15000, rttvar=1000, timeout=30000))

    def test_discard(self):
        self.assertEqual(merge_timeout_profiles(self.results, SEED, "discard"), SEED)

    def test_no_results(self):
        self.assertEqual(merge_timeout_profiles([], SEED, "last"), SEED)

    def test_unknown_policy(self):
        with self.assertRaises(ValueError):
            merge_timeout_profiles(self.results, SEED, "vote")


class TestWorkerDispatcher(unittest.TestCase):
    """Test single-shard and parallel dispatch."""

    def make_dispatcher(self, engine, workers=20, merge="last"):
        config = ScanConfiguration(enabled=True, worker_count=workers, timeout_merge=merge)
        monitor = PerformanceMonitor()
        return WorkerDispatcher(engine, config, monitor), monitor

    def test_no_shards(self):
        engine = FakeProbeEngine()
        dispatcher, monitor = self.make_dispatcher(engine)

        profile = asyncio.run(dispatcher.dispatch([], None, "syn", SEED))

        self.assertEqual(profile, SEED)
        self.assertEqual(engine.handles, [])
        self.assertEqual(dispatcher.results, [])

    @patch("adaptscan.scanners.dispatcher.ThreadPoolExecutor")
    def test_single_shard_runs_inline(self, mock_executor):
        engine = FakeProbeEngine(rounds=2)
        dispatcher, monitor = self.make_dispatcher(engine)
        shards = partition_targets(["10.0.0.1"], 20)

        profile = asyncio.run(dispatcher.dispatch(shards, None, "syn", SEED))

        mock_executor.assert_not_called()
        self.assertEqual(len(dispatcher.results), 1)
        self.assertEqual(dispatcher.results[0].sequence, 1)
        self.assertEqual(profile, dispatcher.results[0].timeout_profile)
        self.assertEqual(monitor.counters.probes_sent.value, 10)

    def test_parallel_merges_probe_counts(self):
        """Merged counters equal the sum of every shard's reported counts."""
        engine = FakeProbeEngine(rounds=2, probes_per_host=10, responses_per_host=6)
        dispatcher, monitor = self.make_dispatcher(engine, workers=20)
        shards = partition_targets([f"10.0.0.{i}" for i in range(25)], 20)

        asyncio.run(dispatcher.dispatch(shards, "80,443", "syn", SEED))

        self.assertEqual(len(dispatcher.results), len(shards))
        self.assertEqual(
            monitor.counters.probes_sent.value,
            sum(result.stats.probes_sent for result in dispatcher.results),
        )
        self.assertEqual(monitor.counters.probes_sent.value, 250)
        self.assertEqual(monitor.counters.responses_received.value, 150)
        self.assertEqual(
            sorted(result.sequence for result in dispatcher.results),
            list(range(1, len(shards) + 1)),
        )
        self.assertEqual(
            [result.shard.index for result in dispatcher.results],
            list(range(len(shards))),
        )

    def test_parallel_respects_worker_bound(self):
        engine = FakeProbeEngine(rounds=1, delay=0.02)
        dispatcher, _ = self.make_dispatcher(engine, workers=3)
        shards = [TargetShard(index=i, targets=(f"host-{i}",)) for i in range(9)]

        asyncio.run(dispatcher.dispatch(shards, None, "syn", SEED))

        self.assertEqual(len(engine.handles), 9)
        self.assertLessEqual(engine.max_active, 3)
        self.assertGreaterEqual(engine.max_active, 1)

    def test_each_shard_gets_its_own_profile(self):
        """Engine refinements in one shard never leak into another."""

        def refine(handle):
            offset = int(handle.targets[0].split("-")[1])
            profile = handle.timeout_profile
            return TimeoutProfile(
                srtt=profile.srtt, rttvar=profile.rttvar, timeout=profile.timeout + offset
            )

        engine = FakeProbeEngine(rounds=3, refine=refine)
        dispatcher, _ = self.make_dispatcher(engine, workers=4)
        shards = [TargetShard(index=i, targets=(f"host-{i}",)) for i in range(4)]

        asyncio.run(dispatcher.dispatch(shards, None, "syn", SEED))

        for result in dispatcher.results:
            with self.subTest(shard=result.shard.index):
                self.assertEqual(result.timeout_profile.timeout, 22000 + 3 * result.shard.index)

    def test_average_merge_after_parallel_run(self):
        engine = FakeProbeEngine(rounds=1)
        dispatcher, _ = self.make_dispatcher(engine, workers=4, merge="average")
        shards = partition_targets(["a", "b", "c", "d"], 4)

        profile = asyncio.run(dispatcher.dispatch(shards, None, "syn", SEED))

        self.assertEqual(profile, TimeoutProfile(srtt=12000, rttvar=10000, timeout=22000))

    def test_engine_failure_propagates(self):
        engine = FakeProbeEngine(rounds=1, fail_target="host-2")
        dispatcher, _ = self.make_dispatcher(engine, workers=2)
        shards = [TargetShard(index=i, targets=(f"host-{i}",)) for i in range(4)]

        with self.assertRaises(ConnectionError):
            asyncio.run(dispatcher.dispatch(shards, None, "syn", SEED))

    def test_no_shard_starts_after_a_failure(self):
        """Shards still waiting for a worker are never handed to the engine once one fails."""
        engine = FakeProbeEngine(rounds=1, fail_target="host-0", delay=0.01)
        dispatcher, monitor = self.make_dispatcher(engine, workers=1)
        shards = [TargetShard(index=i, targets=(f"host-{i}",)) for i in range(5)]

        with self.assertLogs("adaptscan.scanners.dispatcher", level="ERROR"):
            with self.assertRaises(ConnectionError):
                asyncio.run(dispatcher.dispatch(shards, None, "syn", SEED))

        self.assertEqual([handle.targets for handle in engine.handles], [["host-0"]])
        self.assertEqual(monitor.counters.probes_sent.value, 0)

    def test_progress_request_reaches_every_shard(self):
        """One progress request logs a snapshot from each running shard."""
        trigger = ProgressTrigger()
        barrier = threading.Barrier(4, action=trigger.request, timeout=5)

        def request_once_all_running(handle):
            if handle.state["remaining"] == 1:
                barrier.wait()
            return handle.timeout_profile

        engine = FakeProbeEngine(rounds=2, refine=request_once_all_running)
        config = ScanConfiguration(enabled=True, worker_count=4)
        dispatcher = WorkerDispatcher(engine, config, PerformanceMonitor(), progress=trigger)
        shards = [TargetShard(index=i, targets=(f"host-{i}",)) for i in range(4)]

        with self.assertLogs("adaptscan.scanners.scan_loop", level="INFO") as logs:
            asyncio.run(dispatcher.dispatch(shards, None, "syn", SEED))

        snapshots = [line for line in logs.output if "50.00% done" in line]
        self.assertEqual(len(snapshots), 4)
        for index in range(4):
            self.assertTrue(any(f"Shard {index}:" in line for line in snapshots))


if __name__ == "__main__":
    unittest.main()
