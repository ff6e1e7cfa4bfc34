import asyncio
import unittest
from unittest.mock import patch

from adaptscan.common.config import ScanConfiguration
from adaptscan.core.models import TimeoutProfile
from adaptscan.scanners.orchestrator import AdaptiveScanOrchestrator, run_adaptive_scan
from adaptscan.tests.fakes import FakeProbeEngine


class TestBaselinePath(unittest.TestCase):
    """Test delegation to the engine when adaptive mode is off."""

    def test_disabled_single_target(self):
        """The baseline scan gets the caller's profile untouched; nothing else is created."""
        engine = FakeProbeEngine()
        orchestrator = AdaptiveScanOrchestrator(engine, ScanConfiguration(enabled=False))
        profile = TimeoutProfile(srtt=30000, rttvar=7000, timeout=50000)

        result = asyncio.run(orchestrator.run(["10.0.0.1"], "1-1024", "syn", profile))

        self.assertEqual(len(engine.baseline_calls), 1)
        targets, ports, mode, passed_profile = engine.baseline_calls[0]
        self.assertEqual(targets, ["10.0.0.1"])
        self.assertEqual(ports, "1-1024")
        self.assertEqual(mode, "syn")
        self.assertIs(passed_profile, profile)
        self.assertIs(result, profile)
        self.assertEqual(engine.handles, [])
        self.assertIsNone(orchestrator.last_session)

    def test_baseline_result_returned(self):
        final = TimeoutProfile(srtt=1, rttvar=2, timeout=3)
        engine = FakeProbeEngine(baseline_result=final)
        orchestrator = AdaptiveScanOrchestrator(engine)

        self.assertEqual(orchestrator.run_baseline(["a"], None, "syn"), final)
        self.assertEqual(engine.baseline_calls[0][3], None)


class TestAdaptivePath(unittest.TestCase):
    """Test full adaptive sessions."""

    def test_twenty_five_targets_twenty_workers(self):
        engine = FakeProbeEngine(rounds=2, probes_per_host=12, responses_per_host=9, delay=0.001)
        config = ScanConfiguration(enabled=True, worker_count=20)
        orchestrator = AdaptiveScanOrchestrator(engine, config)
        targets = [f"192.168.1.{i}" for i in range(1, 26)]

        asyncio.run(orchestrator.run(targets, "22,80,443", "syn"))

        session = orchestrator.last_session
        self.assertLessEqual(len(session.shard_results), 20)
        self.assertEqual(
            session.report.probes_sent,
            sum(result.stats.probes_sent for result in session.shard_results),
        )
        self.assertEqual(session.report.probes_sent, 300)
        self.assertEqual(session.report.success_rate, 75.0)
        self.assertGreater(session.monitor.duration, 0)
        self.assertIsNotNone(session.started_at)
        self.assertIsNotNone(session.stopped_at)
        self.assertEqual(engine.baseline_calls, [])

    def test_default_seed_profile(self):
        """Without a caller profile the default seed goes through both tuning passes."""
        engine = FakeProbeEngine(rounds=1, estimated_probe_count=100)
        orchestrator = AdaptiveScanOrchestrator(engine, ScanConfiguration(enabled=True))

        profile = asyncio.run(orchestrator.run(["10.0.0.1", "10.0.0.2"], None, "syn"))

        self.assertEqual(profile, TimeoutProfile(srtt=12000, rttvar=10000, timeout=22000))
        self.assertEqual(orchestrator.last_session.timeout_profile, profile)

    def test_large_workload_seed(self):
        engine = FakeProbeEngine(rounds=1, estimated_probe_count=5000)
        orchestrator = AdaptiveScanOrchestrator(engine, ScanConfiguration(enabled=True))
        seed = TimeoutProfile(srtt=100000, rttvar=20000, timeout=200000)

        profile = asyncio.run(orchestrator.run(["10.0.0.1"], None, "syn", seed))

        # 200000 * 0.4 * 0.6 and 100000 * 0.4 * 0.6
        self.assertEqual(profile, TimeoutProfile(srtt=24000, rttvar=20000, timeout=48000))
        self.assertEqual(seed.timeout, 200000)

    def test_monitoring_disabled(self):
        """No timestamps and no report when performance monitoring is off."""
        engine = FakeProbeEngine(rounds=1)
        config = ScanConfiguration(enabled=True, worker_count=4, performance_monitoring=False)
        orchestrator = AdaptiveScanOrchestrator(engine, config)

        with self.assertLogs("adaptscan", level="INFO") as logs:
            asyncio.run(orchestrator.run(["a", "b", "c", "d", "e"], None, "syn"))

        session = orchestrator.last_session
        self.assertIsNone(session.started_at)
        self.assertIsNone(session.stopped_at)
        self.assertIsNone(session.report)
        self.assertFalse(any("Performance Report" in line for line in logs.output))
        self.assertIn("Probes sent: 0", orchestrator.performance_report())

    def test_empty_targets(self):
        engine = FakeProbeEngine()
        orchestrator = AdaptiveScanOrchestrator(engine, ScanConfiguration(enabled=True))

        profile = asyncio.run(orchestrator.run([], None, "syn"))

        self.assertEqual(profile, TimeoutProfile(srtt=8000, rttvar=10000, timeout=16000))
        self.assertEqual(engine.handles, [])
        self.assertEqual(orchestrator.last_session.report.probes_sent, 0)

    def test_session_uses_config_snapshot(self):
        config = ScanConfiguration(enabled=True, worker_count=2)
        orchestrator = AdaptiveScanOrchestrator(FakeProbeEngine(rounds=1), config)

        asyncio.run(orchestrator.run(["a", "b"], None, "syn"))
        orchestrator.set_worker_count(8)

        self.assertIsNot(orchestrator.last_session.config, config)
        self.assertEqual(orchestrator.last_session.config.worker_count, 2)
        self.assertEqual(config.worker_count, 8)

    def test_performance_report_text(self):
        orchestrator = AdaptiveScanOrchestrator(
            FakeProbeEngine(rounds=1), ScanConfiguration(enabled=True, worker_count=2)
        )
        asyncio.run(orchestrator.run(["a", "b", "c"], None, "syn"))

        text = orchestrator.performance_report()
        self.assertIn("Probes sent: 30", text)
        self.assertIn("Responses received: 24", text)
        self.assertIn("Success rate: 80.00%", text)
        self.assertIn("--- Shards ---", text)

    def test_engine_errors_propagate(self):
        engine = FakeProbeEngine(fail_target="b")
        orchestrator = AdaptiveScanOrchestrator(
            engine, ScanConfiguration(enabled=True, worker_count=2)
        )
        with self.assertRaises(ConnectionError):
            asyncio.run(orchestrator.run(["a", "b", "c", "d"], None, "syn"))


class TestRuntimeSetters(unittest.TestCase):
    def setUp(self):
        self.orchestrator = AdaptiveScanOrchestrator(FakeProbeEngine())

    def test_set_enabled(self):
        self.assertFalse(self.orchestrator.config.enabled)
        self.orchestrator.set_enabled(True)
        self.assertTrue(self.orchestrator.config.enabled)

    def test_set_worker_count(self):
        self.orchestrator.set_worker_count(5)
        self.assertEqual(self.orchestrator.config.worker_count, 5)
        with self.assertRaises(ValueError):
            self.orchestrator.set_worker_count(0)

    def test_set_adaptive_timeout_factor(self):
        self.orchestrator.set_adaptive_timeout_factor(0.5)
        self.assertEqual(self.orchestrator.config.adaptive_timeout_factor, 0.5)
        with self.assertRaises(ValueError):
            self.orchestrator.set_adaptive_timeout_factor(-1)


class TestRunAdaptiveScan(unittest.TestCase):
    def test_sync_wrapper(self):
        engine = FakeProbeEngine(rounds=1)
        profile = run_adaptive_scan(
            engine, ["a", "b"], None, "syn", config=ScanConfiguration(enabled=True)
        )
        self.assertEqual(profile.timeout, 22000)

    @patch("adaptscan.scanners.orchestrator.AdaptiveScanOrchestrator.run_adaptive")
    def test_sync_wrapper_disabled(self, mock_adaptive):
        engine = FakeProbeEngine()
        run_adaptive_scan(engine, ["a"], None, "syn")
        mock_adaptive.assert_not_called()
        self.assertEqual(len(engine.baseline_calls), 1)


if __name__ == "__main__":
    unittest.main()
