"""
Adaptive scan execution: scan loop driver, worker dispatcher and entry point.
"""

from adaptscan.scanners.dispatcher import WorkerDispatcher
from adaptscan.scanners.orchestrator import AdaptiveScanOrchestrator, run_adaptive_scan
from adaptscan.scanners.scan_loop import ScanLoopDriver

__all__ = [
    "AdaptiveScanOrchestrator",
    "ScanLoopDriver",
    "WorkerDispatcher",
    "run_adaptive_scan",
]
