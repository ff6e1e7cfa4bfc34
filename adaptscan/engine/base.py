"""
Contract of the probe engine driven by the adaptive scan layer.

The engine owns packet construction, socket I/O, per-host protocol state and
RTT estimation. This layer only calls the primitives below and reads the
timing and congestion fields of the scan handle.
"""

import importlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from adaptscan.common.logger import setup_logger
from adaptscan.core.models import CongestionParams, ProbeStats, TimeoutProfile

setup_logger()
logger = logging.getLogger(__name__)


@dataclass
class ScanHandle:
    """
    Per-scan state created by the engine.

    Attributes:
        targets (List): Targets covered by this scan
        port_spec: Port specification, opaque to this layer
        scan_mode: Scan type, opaque to this layer
        timeout_profile (TimeoutProfile): Timing state used and refined by the engine
        congestion (CongestionParams): Congestion control parameters
        estimated_probe_count (int): Probes the engine expects to send
        state: Engine-private data
    """

    targets: List[Any]
    port_spec: Any
    scan_mode: Any
    timeout_profile: TimeoutProfile
    congestion: CongestionParams
    estimated_probe_count: int = 0
    state: Any = None


class ProbeEngine(ABC):
    """
    Base class for probe engines.

    Every primitive operates on a ScanHandle from create_scan. Errors raised
    by an engine are propagated unchanged by the adaptive layer.
    """

    @abstractmethod
    def create_scan(self, targets: List[Any], port_spec: Any, scan_mode: Any) -> ScanHandle:
        """Build the scan state for a set of targets."""

    @abstractmethod
    def incomplete_hosts_remain(self, handle: ScanHandle) -> bool:
        """True while any host of the scan has not reached a terminal state."""

    @abstractmethod
    def is_raw_scan(self, handle: ScanHandle) -> bool:
        """True if the scan needs a packet sniffer."""

    def begin_sniffer(self, handle: ScanHandle, targets: List[Any]) -> None:
        """Start capturing responses for a raw scan."""

    @abstractmethod
    def do_any_pings(self, handle: ScanHandle) -> None:
        pass

    @abstractmethod
    def do_any_outstanding_retransmits(self, handle: ScanHandle) -> None:
        pass

    @abstractmethod
    def do_any_retry_stack_retransmits(self, handle: ScanHandle) -> None:
        pass

    @abstractmethod
    def do_any_new_probes(self, handle: ScanHandle) -> None:
        pass

    @abstractmethod
    def wait_for_responses(self, handle: ScanHandle) -> None:
        """Block until responses arrive or the handle's timeout elapses."""

    @abstractmethod
    def process_data(self, handle: ScanHandle) -> None:
        pass

    @abstractmethod
    def completion_fraction(self, handle: ScanHandle) -> float:
        pass

    def current_rate(self, handle: ScanHandle) -> float:
        """Current probe rate in probes per second."""
        return 0.0

    @abstractmethod
    def probe_stats(self, handle: ScanHandle) -> ProbeStats:
        pass

    @abstractmethod
    def baseline_scan(
        self,
        targets: List[Any],
        port_spec: Any,
        scan_mode: Any,
        timeout_profile: Optional[TimeoutProfile] = None,
    ) -> Optional[TimeoutProfile]:
        """
        Run the engine's own, unmodified scan.

        Returns:
            TimeoutProfile or None: The engine's final timing state, if it reports one
        """


def load_engine(spec: str, **kwargs) -> ProbeEngine:
    """
    Import and instantiate an engine from a "package.module:attribute" string.

    Args:
        spec: Import path of an engine class or factory callable
        **kwargs: Passed to the class or factory

    Returns:
        ProbeEngine: The engine instance
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"engine must be given as 'module:attribute', got {spec!r}")

    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    engine = factory(**kwargs)

    if not isinstance(engine, ProbeEngine):
        raise TypeError(f"{spec} did not produce a ProbeEngine (got {type(engine).__name__})")

    logger.debug(f"Loaded probe engine {type(engine).__name__} from {spec}")
    return engine
