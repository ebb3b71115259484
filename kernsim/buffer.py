"""Bounded character buffers and the console's input/output pair."""

from __future__ import annotations

from collections import deque
from types import TracebackType

__all__ = [
    "DEFAULT_CONSOLE_CAPACITY",
    "BufferFull",
    "BufferEmpty",
    "KBuffer",
    "ConsoleBuffers",
]

DEFAULT_CONSOLE_CAPACITY = 200


class BufferFull(Exception):
    """Raised when putting into a buffer that has no free slot."""


class BufferEmpty(Exception):
    """Raised when getting from a buffer that holds nothing."""


def _check_char(char: str) -> None:
    if not isinstance(char, str) or len(char) != 1:
        raise ValueError(f"expected a single character, got {char!r}")


class KBuffer:
    """Bounded FIFO of characters."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive: {capacity}")
        self._capacity = capacity
        self._items: deque[str] = deque()

    @property
    def capacity(self) -> int:
        """Number of characters the buffer can hold."""
        return self._capacity

    def put(self, char: str) -> None:
        """Append one character; raises BufferFull when there is no room."""
        _check_char(char)
        if len(self._items) >= self._capacity:
            raise BufferFull(f"buffer of {self._capacity} characters is full")
        self._items.append(char)

    def get(self) -> str:
        """Remove and return the oldest character; raises BufferEmpty if none."""
        if not self._items:
            raise BufferEmpty("buffer is empty")
        return self._items.popleft()

    def count(self) -> int:
        """Number of characters currently held."""
        return len(self._items)

    def drain(self) -> str:
        """Remove and return everything still held, oldest first."""
        text = "".join(self._items)
        self._items.clear()
        return text

    def __len__(self) -> int:
        return len(self._items)


class ConsoleBuffers:
    """The console's output and input buffers."""

    def __init__(self, capacity: int = DEFAULT_CONSOLE_CAPACITY) -> None:
        self.output = KBuffer(capacity)
        self.input = KBuffer(capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("console buffers are closed")

    def putc(self, char: str) -> None:
        """Queue one character for output."""
        self._check_open()
        self.output.put(char)

    def getc(self) -> str:
        """Take the oldest character of input."""
        self._check_open()
        return self.input.get()

    def close(self) -> str:
        """Close both buffers, discarding unread input.

        Returns the output that was queued but never sent.
        """
        if self._closed:
            return ""
        self._closed = True
        self.input.drain()
        return self.output.drain()

    def __enter__(self) -> ConsoleBuffers:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()