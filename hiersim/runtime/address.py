from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from ..config import log2_exact

MASK_32 = 0xFFFF_FFFF


@dataclass(frozen=True)
class Geometry:
    """Address split of one cache level: | tag | set index | block offset |."""
    block_offset_bits: int
    set_index_bits: int

    @classmethod
    def for_level(cls, sets: int, block_size: int) -> Geometry:
        return cls(
            block_offset_bits=log2_exact(block_size, "Block size"),
            set_index_bits=log2_exact(sets, "Number of sets"),
        )

    @property
    def set_index_mask(self) -> int:
        return (1 << self.set_index_bits) - 1

    def decode(self, address: int) -> Tuple[int, int]:
        """Maps an address to (tag, set_index)."""
        return self.split_block(address >> self.block_offset_bits)

    def split_block(self, block: int) -> Tuple[int, int]:
        """Splits a block number (address without offset bits) into (tag, set_index)."""
        return block >> self.set_index_bits, block & self.set_index_mask

    def block_of(self, tag: int, set_index: int) -> int:
        """Inverse of split_block. The result can be re-split with any other level's geometry."""
        return (tag << self.set_index_bits) | set_index
