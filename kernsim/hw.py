"""Machine constants and block-size arithmetic shared across the kernel."""

DEFAULT_STACK_SIZE = 4096
DEFAULT_TIME_SLICE = 2

MEM_BLOCK_SIZE = 64

CONSOLE_IRQ = 10
CONSOLE_TX_STATUS_BIT = 1 << 5
CONSOLE_RX_STATUS_BIT = 1

__all__ = [
    "DEFAULT_STACK_SIZE",
    "DEFAULT_TIME_SLICE",
    "MEM_BLOCK_SIZE",
    "CONSOLE_IRQ",
    "CONSOLE_TX_STATUS_BIT",
    "CONSOLE_RX_STATUS_BIT",
    "blocks_for",
    "round_to_block",
]


def _check_size(size: int) -> None:
    if size < 0:
        raise ValueError(f"size must not be negative: {size}")


def blocks_for(size: int) -> int:
    """Return how many MEM_BLOCK_SIZE blocks are needed to hold ``size`` bytes."""
    _check_size(size)
    return -(-size // MEM_BLOCK_SIZE)


def round_to_block(size: int) -> int:
    """Round ``size`` up to the next multiple of MEM_BLOCK_SIZE."""
    return blocks_for(size) * MEM_BLOCK_SIZE