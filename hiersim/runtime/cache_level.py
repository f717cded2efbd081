from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from ..config import LevelConfig
from ..utils.logging import get_logger
from .address import Geometry
from .set_store import Eviction, SetStore

logger = get_logger(__name__)


class NextLevel(Protocol):
    def access(self, address: int) -> int: ...


@dataclass(frozen=True)
class LevelStats:
    """Snapshot of one level's counters."""
    name: str
    enabled: bool
    hit_time: int
    references: int = 0
    misses: int = 0
    penalties: int = 0
    invalidations: int = 0

    @property
    def hits(self) -> int:
        return self.references - self.misses

    @property
    def miss_rate(self) -> float:
        return self.misses / self.references if self.references else 0.0

    @property
    def avg_miss_penalty(self) -> float:
        return self.penalties / self.misses if self.misses else 0.0

    @property
    def avg_access_time(self) -> float:
        """Average cycles per reference: hit time plus the amortized miss penalty."""
        if not self.references:
            return 0.0
        return self.hit_time + self.penalties / self.references


class CacheLevel:
    """
    One set-associative LRU cache level.

    The level only knows its own geometry and the next level down; on a miss
    the next level's latency becomes this level's miss penalty. A level
    configured with zero sets is a pass-through and records nothing.
    """
    def __init__(self, name: str, config: LevelConfig, block_size: int, next_level: NextLevel):
        config.validate(name)
        self.name = name
        self.config = config
        self.next_level = next_level
        self.hit_time = config.hit_time

        # Called with every block this level evicts from a full set
        self.eviction_listener: Optional[Callable[[Eviction], None]] = None

        self.references = 0
        self.misses = 0
        self.penalties = 0
        self.invalidations = 0

        if config.enabled:
            self.geometry: Optional[Geometry] = Geometry.for_level(config.sets, block_size)
            self.store: Optional[SetStore] = SetStore(config.sets, config.associativity)
        else:
            self.geometry = None
            self.store = None

    @property
    def enabled(self) -> bool:
        return self.store is not None

    def access(self, address: int) -> int:
        """Looks up an address, filling it on a miss. Returns the elapsed cycles."""
        if not self.enabled:
            return self.next_level.access(address)

        self.references += 1
        tag, set_index = self.geometry.decode(address)

        way = self.store.lookup(set_index, tag)
        if way is not None:
            self.store.touch(set_index, way)
            return self.hit_time

        self.misses += 1
        penalty = self.next_level.access(address)
        self.penalties += penalty

        # The fill must follow the lower-level access: an inclusive L2 may
        # have invalidated a way of this very set in the meantime.
        evicted = self.store.insert(set_index, tag)
        if evicted is not None:
            logger.debug("%s: evicted block %#x from set %d", self.name,
                         self.geometry.block_of(*evicted), evicted.set_index)
            if self.eviction_listener is not None:
                self.eviction_listener(evicted)
        return self.hit_time + penalty

    def block_of(self, eviction: Eviction) -> int:
        return self.geometry.block_of(eviction.tag, eviction.set_index)

    def invalidate_block(self, block: int) -> bool:
        """Drops a block (address without offset bits) if this level holds it."""
        if not self.enabled:
            return False
        tag, set_index = self.geometry.split_block(block)
        removed = self.store.invalidate(set_index, tag)
        if removed:
            self.invalidations += 1
        return removed

    def holds_block(self, block: int) -> bool:
        if not self.enabled:
            return False
        tag, set_index = self.geometry.split_block(block)
        return self.store.contains(set_index, tag)

    def resident_blocks(self):
        if not self.enabled:
            return
        for set_index, tag in self.store.resident():
            yield self.geometry.block_of(tag, set_index)

    def stats(self) -> LevelStats:
        return LevelStats(
            name=self.name,
            enabled=self.enabled,
            hit_time=self.hit_time,
            references=self.references,
            misses=self.misses,
            penalties=self.penalties,
            invalidations=self.invalidations,
        )

    def __repr__(self) -> str:
        return f"CacheLevel({self.name}, {self.config})"
