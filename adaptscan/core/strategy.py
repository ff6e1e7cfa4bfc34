"""
Per-target extension points of the adaptive scan.

The scan loop calls these hooks around each shard. NoOpStrategy leaves every
target and parameter untouched.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable

from adaptscan.core.models import CongestionParams


class ScanStrategy(ABC):
    """
    Hooks run by the scan loop before and after a shard is scanned.

    Preprocessing and postprocessing run only when batch processing is
    enabled; adjust_retries only when smart retry is enabled.
    """

    @abstractmethod
    def predict_port_states(self, target: Any, port_spec: Any) -> None:
        """Pre-set likely port states for a target before probing."""

    @abstractmethod
    def optimize_scan_order(self, target: Any, port_spec: Any) -> None:
        """Reorder the ports probed on a target."""

    @abstractmethod
    def preset_common_ports(self, target: Any) -> None:
        """Seed well-known ports for a target."""

    @abstractmethod
    def validate_scan_results(self, target: Any) -> None:
        """Check a target's results once its shard completes."""

    @abstractmethod
    def cleanup_temporary_data(self, target: Any) -> None:
        """Drop per-target scratch data once its shard completes."""

    @abstractmethod
    def adjust_retries(self, congestion: CongestionParams) -> CongestionParams:
        """Refine tuned congestion parameters for retry pacing."""

    def preprocess(self, targets: Iterable[Any], port_spec: Any) -> None:
        for target in targets:
            if target is None:
                continue
            self.predict_port_states(target, port_spec)
            self.optimize_scan_order(target, port_spec)
            self.preset_common_ports(target)

    def postprocess(self, targets: Iterable[Any]) -> None:
        for target in targets:
            if target is None:
                continue
            self.validate_scan_results(target)
            self.cleanup_temporary_data(target)


class NoOpStrategy(ScanStrategy):
    def predict_port_states(self, target, port_spec):
        pass

    def optimize_scan_order(self, target, port_spec):
        pass

    def preset_common_ports(self, target):
        pass

    def validate_scan_results(self, target):
        pass

    def cleanup_temporary_data(self, target):
        pass

    def adjust_retries(self, congestion):
        return congestion
