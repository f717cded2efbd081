import random
import pytest
from hiersim.config import ConfigError, LevelConfig
from hiersim.runtime.cache_level import CacheLevel
from hiersim.runtime.hierarchy import Hierarchy
from hiersim.runtime.memory import MainMemory


def test_instruction_path_without_l2(make_config):
    """1 set, 2 ways, 4B blocks: two cold misses then a hit."""
    h = Hierarchy(make_config(icache="1:2:1", dcache="1:2:1"))

    assert h.access_instruction(0x00) == 101
    assert h.access_instruction(0x04) == 101
    assert h.access_instruction(0x00) == 1

    stats = h.stats()
    assert stats["icache"].references == 3
    assert stats["icache"].misses == 2
    assert stats["icache"].penalties == 200
    assert stats["dcache"].references == 0
    assert stats["l2cache"].references == 0


def test_instruction_path_with_l2(make_config):
    h = Hierarchy(make_config(icache="1:2:1", dcache="1:2:1", l2cache="1:2:10"))

    assert h.access_instruction(0x00) == 1 + 10 + 100
    assert h.access_instruction(0x04) == 1 + 10 + 100
    assert h.access_instruction(0x00) == 1

    stats = h.stats()
    assert stats["l2cache"].references == 2
    assert stats["l2cache"].misses == 2
    assert stats["l2cache"].penalties == 200
    assert stats["icache"].penalties == 220
    assert h.memory.references == 2


def test_l2_is_shared_between_l1s(make_config):
    h = Hierarchy(make_config(icache="1:1:1", dcache="1:1:1", l2cache="4:2:10"))

    h.access_instruction(0x40)
    # Data path misses in the D-cache but hits the block the I-cache brought into L2
    assert h.access_data(0x40) == 1 + 10

    stats = h.stats()
    assert stats["l2cache"].references == 2
    assert stats["l2cache"].misses == 1


def test_disabled_l1s_go_straight_to_l2(make_config):
    h = Hierarchy(make_config(l2cache="1:2:10"))

    assert h.access_instruction(0x00) == 110
    assert h.access_data(0x00) == 10
    assert h.stats()["icache"].references == 0
    assert h.stats()["dcache"].references == 0
    assert h.stats()["l2cache"].references == 2


def test_everything_disabled_costs_memory_latency(make_config):
    h = Hierarchy(make_config())
    assert h.access_instruction(0x1234) == 100
    assert h.access_data(0x1234) == 100
    assert all(s.references == 0 for s in h.stats().values())


def test_inclusive_eviction_invalidates_icache(make_config):
    """L2 holds one block; replacing it must drop the I-cache copy as well."""
    h = Hierarchy(make_config(icache="1:2:1", l2cache="1:1:10", inclusive=True))

    assert h.access_instruction(0x00) == 111
    assert h.icache.holds_block(0)

    assert h.access_instruction(0x10) == 111
    assert not h.icache.holds_block(0)
    assert h.icache.holds_block(4)
    assert h.stats()["icache"].invalidations == 1

    # Block 0 would still hit in a 2-way I-cache without inclusion
    assert h.access_instruction(0x00) == 111
    assert h.stats()["icache"].misses == 3
    assert h.inclusion_violations() == []


def test_non_inclusive_keeps_l1_copy(make_config):
    h = Hierarchy(make_config(icache="1:2:1", l2cache="1:1:10", inclusive=False))

    h.access_instruction(0x00)
    h.access_instruction(0x10)

    assert h.access_instruction(0x00) == 1
    assert h.stats()["icache"].invalidations == 0
    assert h.inclusion_violations() == [("icache", 0)]


def test_inclusive_single_way_scenario(make_config):
    h = Hierarchy(make_config(icache="1:1:1", l2cache="1:1:10", inclusive=True))

    h.access_instruction(0x00)
    h.access_instruction(0x10)

    assert not h.icache.holds_block(0)
    assert h.icache.holds_block(4)
    assert h.l2cache.holds_block(4)
    h.check_invariants()


def test_inclusive_eviction_reaches_both_l1s(make_config):
    h = Hierarchy(make_config(icache="1:2:1", dcache="1:2:1", l2cache="1:1:10", inclusive=True))

    h.access_instruction(0x00)
    assert h.access_data(0x00) == 11  # D-cache miss, L2 hit
    assert h.dcache.holds_block(0)

    h.access_data(0x20)

    assert not h.icache.holds_block(0)
    assert not h.dcache.holds_block(0)
    assert h.stats()["icache"].invalidations == 1
    assert h.stats()["dcache"].invalidations == 1


def test_back_invalidation_uses_l1_geometry(make_config):
    """L1 has more sets than L2; the evicted block must be found in the right L1 set."""
    h = Hierarchy(make_config(icache="4:1:1", l2cache="1:1:10", inclusive=True))

    h.access_instruction(0x04)  # block 1 -> I-cache set 1
    h.access_instruction(0x08)  # block 2 -> I-cache set 2, evicts block 1 from L2

    assert not h.icache.holds_block(1)
    assert h.icache.holds_block(2)
    assert h.stats()["icache"].invalidations == 1


def test_back_invalidation_of_absent_block_is_silent(make_config):
    h = Hierarchy(make_config(icache="1:1:1", dcache="1:1:1", l2cache="1:1:10", inclusive=True))

    h.access_instruction(0x00)
    h.access_instruction(0x04)  # L2 evicts block 0, which only the I-cache holds

    assert h.stats()["icache"].invalidations == 1
    assert h.stats()["dcache"].invalidations == 0
    assert h.icache.holds_block(1)
    h.check_invariants()


@pytest.mark.parametrize("seed", range(4))
def test_inclusion_holds_for_random_traces(make_config, seed):
    rng = random.Random(seed)
    h = Hierarchy(make_config(icache="2:2:1", dcache="4:1:1", l2cache="2:2:10", inclusive=True))
    for _ in range(3000):
        address = rng.randrange(64) * 4
        if rng.random() < 0.5:
            h.access_instruction(address)
        else:
            h.access_data(address)
        assert h.inclusion_violations() == []
    h.check_invariants()


@pytest.mark.parametrize("seed", range(3))
def test_ranks_stay_contiguous_across_levels(make_config, seed):
    rng = random.Random(seed)
    h = Hierarchy(make_config(icache="2:4:1", dcache="2:4:1", l2cache="4:4:10", inclusive=True))
    for _ in range(2000):
        address = rng.randrange(1 << 12)
        if rng.random() < 0.5:
            h.access_instruction(address)
        else:
            h.access_data(address)
        for level in h.levels:
            level.store.check_invariants()


def test_repeated_access_never_adds_a_miss(make_config):
    rng = random.Random(7)
    h = Hierarchy(make_config(icache="4:2:1", dcache="4:2:2", l2cache="8:4:10", inclusive=True))
    for _ in range(500):
        address = rng.randrange(1 << 16)
        h.access_data(address)
        misses = {name: s.misses for name, s in h.stats().items()}
        assert h.access_data(address) == 2
        assert {name: s.misses for name, s in h.stats().items()} == misses


def test_disabled_icache_matches_l2_only_chain(make_config):
    rng = random.Random(3)
    addresses = [rng.randrange(1 << 10) for _ in range(500)]

    h = Hierarchy(make_config(l2cache="4:2:10"))
    reference = CacheLevel("l2cache", LevelConfig(4, 2, 10), 4, MainMemory(100))

    for address in addresses:
        assert h.access_instruction(address) == reference.access(address)

    assert h.stats()["icache"].references == 0
    assert h.stats()["l2cache"] == reference.stats()


def test_addresses_are_truncated_to_32_bits(make_config):
    h = Hierarchy(make_config(dcache="1:1:1"))
    h.access_data(0x0)
    assert h.access_data(0x1_0000_0000) == 1


def test_rejects_config_broken_after_construction(make_config):
    config = make_config(icache="1:1:1")
    config.memory_latency = 0
    with pytest.raises(ConfigError, match="Memory latency"):
        Hierarchy(config)
