"""
Probe engine contract consumed by the adaptive scan layer.
"""

from adaptscan.engine.base import ProbeEngine, ScanHandle, load_engine

__all__ = ["ProbeEngine", "ScanHandle", "load_engine"]
