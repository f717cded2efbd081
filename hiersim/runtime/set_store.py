from __future__ import annotations
from typing import List, NamedTuple, Optional


class Eviction(NamedTuple):
    """A block pushed out of a full set, captured before its way was overwritten."""
    tag: int
    set_index: int


class Way:
    """A single storage slot in a cache set."""
    __slots__ = ("valid", "tag", "rank")

    def __init__(self):
        self.valid = False
        self.tag = 0
        # 0 is the most recently used way
        self.rank = 0

    def __repr__(self) -> str:
        state = f"tag={self.tag:#x} rank={self.rank}" if self.valid else "invalid"
        return f"Way({state})"


class CacheSet:
    """
    The ways of one set plus a running count of free (invalid) ways.

    Recency is tracked with per-way ranks instead of an ordered container:
    among the valid ways the ranks are always exactly 0..k-1, where k is the
    number of valid ways, and the way at rank associativity-1 is the LRU victim
    once the set is full.
    """
    def __init__(self, associativity: int):
        self.ways: List[Way] = [Way() for _ in range(associativity)]
        self.free = associativity

    @property
    def associativity(self) -> int:
        return len(self.ways)

    @property
    def full(self) -> bool:
        return self.free == 0

    def find(self, tag: int) -> Optional[int]:
        for i, way in enumerate(self.ways):
            if way.valid and way.tag == tag:
                return i
        return None

    def touch(self, way_index: int):
        """Makes a hit way the most recently used one."""
        hit = self.ways[way_index]
        old_rank = hit.rank
        for way in self.ways:
            if way.valid and way.rank < old_rank:
                way.rank += 1
        hit.rank = 0

    def _age_all(self):
        for way in self.ways:
            if way.valid:
                way.rank += 1

    def fill(self, tag: int) -> Optional[int]:
        """
        Places a missing tag in the set.
        Returns the tag it replaced, or None when a free way was used.
        """
        if self.find(tag) is not None:
            raise AssertionError(f"Invariant broken: tag {tag:#x} is already resident in the set")

        if not self.full:
            # Lowest-index invalid way wins
            target = next(way for way in self.ways if not way.valid)
            self._age_all()
            target.valid = True
            target.tag = tag
            target.rank = 0
            self.free -= 1
            return None

        lru_rank = self.associativity - 1
        victim = next((way for way in self.ways if way.rank == lru_rank), None)
        if victim is None:
            raise AssertionError(f"Invariant broken: full set has no way at rank {lru_rank}")
        old_tag = victim.tag
        self._age_all()
        victim.tag = tag
        victim.rank = 0
        return old_tag

    def remove(self, tag: int) -> bool:
        """Invalidates a resident tag and closes the gap it leaves in the rank order."""
        way_index = self.find(tag)
        if way_index is None:
            return False
        gone = self.ways[way_index]
        gone.valid = False
        for way in self.ways:
            if way.valid and way.rank > gone.rank:
                way.rank -= 1
        self.free += 1
        return True

    def check(self):
        """Raises AssertionError if the rank or tag invariants do not hold."""
        valid = [way for way in self.ways if way.valid]
        if len(valid) != self.associativity - self.free:
            raise AssertionError(f"Invariant broken: free count {self.free} disagrees with {len(valid)} valid ways")
        ranks = sorted(way.rank for way in valid)
        if ranks != list(range(len(valid))):
            raise AssertionError(f"Invariant broken: ranks {ranks} are not contiguous from 0")
        tags = [way.tag for way in valid]
        if len(set(tags)) != len(tags):
            raise AssertionError(f"Invariant broken: duplicate tags {tags}")


class SetStore:
    """All sets of one cache level, indexed by set index and way."""
    def __init__(self, num_sets: int, associativity: int):
        if num_sets <= 0 or associativity <= 0:
            raise ValueError("SetStore needs at least one set and one way.")
        self.associativity = associativity
        self.sets: List[CacheSet] = [CacheSet(associativity) for _ in range(num_sets)]

    def __len__(self) -> int:
        return len(self.sets)

    def lookup(self, set_index: int, tag: int) -> Optional[int]:
        """Returns the way holding a valid copy of tag, or None on a miss."""
        return self.sets[set_index].find(tag)

    def touch(self, set_index: int, way_index: int):
        self.sets[set_index].touch(way_index)

    def insert(self, set_index: int, tag: int) -> Optional[Eviction]:
        """Allocates a way for tag; returns the evicted block if the set was full."""
        old_tag = self.sets[set_index].fill(tag)
        if old_tag is None:
            return None
        return Eviction(old_tag, set_index)

    def invalidate(self, set_index: int, tag: int) -> bool:
        """Drops tag from the set if present. A missing tag is not an error."""
        return self.sets[set_index].remove(tag)

    def contains(self, set_index: int, tag: int) -> bool:
        return self.lookup(set_index, tag) is not None

    def resident(self):
        """Yields (set_index, tag) for every valid way."""
        for set_index, cache_set in enumerate(self.sets):
            for way in cache_set.ways:
                if way.valid:
                    yield set_index, way.tag

    def check_invariants(self):
        for cache_set in self.sets:
            cache_set.check()
