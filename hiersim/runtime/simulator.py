from __future__ import annotations
from collections import Counter
from typing import Any, Dict, Iterable, Tuple

from ..config import SimConfig
from ..trace.reader import TraceEntry
from ..utils.logging import get_logger
from .hierarchy import Hierarchy

logger = get_logger(__name__)


def run(entries: Iterable[TraceEntry], config: SimConfig) -> Tuple[Hierarchy, Dict[str, Any]]:
    """
    Replays a trace through a freshly built hierarchy.

    Entries are processed strictly in order. The returned stats hold the
    per-level snapshots plus whole-run totals and a histogram of access latencies.
    """
    hierarchy = Hierarchy(config)

    # latency -> number of accesses; only a handful of distinct values occur
    latency_histogram = Counter()
    counts = {"instruction": 0, "data": 0}
    cycles = {"instruction": 0, "data": 0}

    for entry in entries:
        if entry.is_instruction:
            path = "instruction"
            latency = hierarchy.access_instruction(entry.address)
        else:
            path = "data"
            latency = hierarchy.access_data(entry.address)
        counts[path] += 1
        cycles[path] += latency
        latency_histogram[latency] += 1

    total_accesses = counts["instruction"] + counts["data"]
    total_cycles = cycles["instruction"] + cycles["data"]
    logger.info("Replayed %d accesses (%d instruction, %d data) in %d cycles",
                total_accesses, counts["instruction"], counts["data"], total_cycles)

    stats = {
        "levels": hierarchy.stats(),
        "memory_references": hierarchy.memory.references,
        "instruction_accesses": counts["instruction"],
        "data_accesses": counts["data"],
        "instruction_cycles": cycles["instruction"],
        "data_cycles": cycles["data"],
        "total_accesses": total_accesses,
        "total_cycles": total_cycles,
        "latency_histogram": dict(sorted(latency_histogram.items())),
    }
    return hierarchy, stats
