from __future__ import annotations
from typing import Dict, List, Tuple

from ..config import SimConfig
from ..utils.logging import get_logger
from .address import MASK_32
from .cache_level import CacheLevel, LevelStats
from .memory import MainMemory
from .set_store import Eviction

logger = get_logger(__name__)


class Hierarchy:
    """
    Split L1 instruction/data caches over a shared L2 and a fixed-latency memory.

    Any level may be disabled (zero sets); a disabled L1 forwards straight to
    the L2 and a disabled L2 forwards straight to memory. When the hierarchy is
    inclusive, every block the L2 evicts is also invalidated in both L1s, so
    that nothing is ever resident in an L1 without being resident in the L2.
    """
    def __init__(self, config: SimConfig):
        config.validate()
        self.config = config
        self.inclusive = config.inclusive

        self.memory = MainMemory(config.memory_latency)
        self.l2cache = CacheLevel("l2cache", config.l2cache, config.block_size, self.memory)
        self.icache = CacheLevel("icache", config.icache, config.block_size, self.l2cache)
        self.dcache = CacheLevel("dcache", config.dcache, config.block_size, self.l2cache)

        if self.inclusive and self.l2cache.enabled:
            self.l2cache.eviction_listener = self._back_invalidate

        logger.info("Cache hierarchy: I$=%s D$=%s L2$=%s block=%dB mem=%d cycles%s",
                    config.icache, config.dcache, config.l2cache, config.block_size,
                    config.memory_latency, " (inclusive)" if self.inclusive else "")

    @property
    def levels(self) -> Tuple[CacheLevel, CacheLevel, CacheLevel]:
        return self.icache, self.dcache, self.l2cache

    def access_instruction(self, address: int) -> int:
        """Instruction fetch. Returns the cycles taken."""
        return self.icache.access(address & MASK_32)

    def access_data(self, address: int) -> int:
        """Data load or store. Returns the cycles taken."""
        return self.dcache.access(address & MASK_32)

    def _back_invalidate(self, eviction: Eviction):
        block = self.l2cache.block_of(eviction)
        for l1 in (self.icache, self.dcache):
            if l1.invalidate_block(block):
                logger.debug("%s: back-invalidated block %#x evicted from l2cache", l1.name, block)

    def stats(self) -> Dict[str, LevelStats]:
        return {level.name: level.stats() for level in self.levels}

    def inclusion_violations(self) -> List[Tuple[str, int]]:
        """(level, block) pairs held by an L1 but not by the L2."""
        if not self.l2cache.enabled:
            return []
        return [
            (l1.name, block)
            for l1 in (self.icache, self.dcache)
            for block in l1.resident_blocks()
            if not self.l2cache.holds_block(block)
        ]

    def check_invariants(self):
        """Raises AssertionError if any set or the inclusion property is broken."""
        for level in self.levels:
            if level.enabled:
                level.store.check_invariants()
        if self.inclusive:
            violations = self.inclusion_violations()
            if violations:
                raise AssertionError(f"Inclusion broken: {violations[:5]}")
