"""First-fit heap allocator over a simulated address range."""

from __future__ import annotations

import bisect
import dataclasses
from dataclasses import dataclass

from kernsim.hw import MEM_BLOCK_SIZE, round_to_block

# Three 64-bit fields: next, prev and size.
BLOCK_HEADER_SIZE = 24

__all__ = ["BLOCK_HEADER_SIZE", "BlockHeader", "MemoryAllocator"]


@dataclass
class BlockHeader:
    """A heap segment: header at ``address`` followed by ``size`` payload bytes."""

    address: int
    size: int

    @property
    def payload(self) -> int:
        return self.address + BLOCK_HEADER_SIZE

    @property
    def end(self) -> int:
        return self.payload + self.size


def _address_key(block: BlockHeader) -> int:
    return block.address


class MemoryAllocator:
    """Keeps address-ordered free and allocated lists; allocates first fit."""

    def __init__(self, heap_start: int, heap_end: int) -> None:
        if heap_end - heap_start <= BLOCK_HEADER_SIZE:
            raise ValueError("heap is too small to hold a block header")
        self._free: list[BlockHeader] = [
            BlockHeader(heap_start, heap_end - heap_start - BLOCK_HEADER_SIZE)
        ]
        self._allocated: list[BlockHeader] = []

    @staticmethod
    def _insert(blocks: list[BlockHeader], block: BlockHeader) -> int:
        index = bisect.bisect_left(blocks, block.address, key=_address_key)
        blocks.insert(index, block)
        return index

    def alloc(self, size: int) -> int:
        """Allocate at least ``size`` bytes and return the payload address.

        Raises ValueError for a non-positive size and MemoryError when no
        free segment is large enough.
        """
        if size <= 0:
            raise ValueError(f"allocation size must be positive: {size}")
        alloc_size = round_to_block(size)

        found = next(
            (
                (index, block)
                for index, block in enumerate(self._free)
                if block.size >= alloc_size + BLOCK_HEADER_SIZE
            ),
            None,
        )
        if found is None:
            raise MemoryError(f"no free segment for {alloc_size} bytes")
        index, block = found

        remaining = block.size - BLOCK_HEADER_SIZE - alloc_size
        if remaining >= BLOCK_HEADER_SIZE + MEM_BLOCK_SIZE:
            # Keep the front part free and carve the allocation off the end.
            block.size = remaining
            taken = BlockHeader(block.payload + remaining, alloc_size)
        else:
            del self._free[index]
            taken = block

        self._insert(self._allocated, taken)
        return taken.payload

    def free(self, address: int) -> None:
        """Return the block whose payload starts at ``address`` to the free list.

        Raises ValueError if ``address`` is not a live allocation.
        """
        if not address:
            raise ValueError("cannot free a null address")
        index = next(
            (i for i, block in enumerate(self._allocated) if block.payload == address),
            None,
        )
        if index is None:
            raise ValueError(f"address {address:#x} is not allocated")
        block = self._allocated.pop(index)

        position = self._insert(self._free, block)
        self._join(position)
        if position > 0:
            self._join(position - 1)

    def _join(self, index: int) -> bool:
        if index + 1 >= len(self._free):
            return False
        current, following = self._free[index], self._free[index + 1]
        if current.end != following.address:
            return False
        current.size += BLOCK_HEADER_SIZE + following.size
        del self._free[index + 1]
        return True

    def free_blocks(self) -> list[BlockHeader]:
        """Snapshot of the free segments in address order."""
        return [dataclasses.replace(block) for block in self._free]

    def allocated_blocks(self) -> list[BlockHeader]:
        """Snapshot of the allocated segments in address order."""
        return [dataclasses.replace(block) for block in self._allocated]