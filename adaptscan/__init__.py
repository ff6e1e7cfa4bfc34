"""
adaptscan - adaptive execution layer for host/port probe engines.

Tunes timeouts and congestion parameters by workload size, partitions targets
across concurrent workers and aggregates runtime telemetry, while the probe
engine keeps full control of the wire protocol.
"""

__version__ = "0.1.0"
