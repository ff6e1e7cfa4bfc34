"""
Splits a target list into disjoint, order-preserving shards.
"""

import math
from typing import List, Optional, Sequence

from adaptscan.core.models import TargetShard


def shard_size_for(target_count: int, worker_count: int) -> int:
    """Number of targets per shard so that at most worker_count shards are built."""
    return max(1, math.ceil(target_count / worker_count))


def partition_targets(
    targets: Optional[Sequence], worker_count: int
) -> List[TargetShard]:
    """
    Partition targets into at most worker_count shards.

    Shards keep the input order and only the final shard may be shorter.
    An empty or missing target list gives no shards.

    Args:
        targets: Targets to partition
        worker_count: Number of workers available (at least 1)

    Returns:
        List[TargetShard]: The shards, in input order
    """
    if worker_count < 1:
        raise ValueError(f"worker count must be at least 1, got {worker_count}")

    targets = list(targets or [])
    if not targets:
        return []

    size = shard_size_for(len(targets), worker_count)
    return [
        TargetShard(index=index, targets=tuple(targets[start : start + size]))
        for index, start in enumerate(range(0, len(targets), size))
    ]
