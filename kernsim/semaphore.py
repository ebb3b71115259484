"""Counting semaphore with a FIFO queue of blocked threads."""

from __future__ import annotations

from collections import deque
from typing import Any

from kernsim.queues import ReadyQueue

__all__ = ["KernelSemaphore"]


class KernelSemaphore:
    """Kernel-side counting semaphore.

    A negative value counts how many threads are blocked on it.
    """

    def __init__(self, init: int = 1) -> None:
        if init < 0:
            raise ValueError(f"initial value must not be negative: {init}")
        self._value = init
        self._blocked: deque[Any] = deque()

    def wait(self, running: Any) -> bool:
        """Take the semaphore on behalf of ``running``.

        Returns True if the thread was blocked and the kernel must dispatch.
        """
        self._value -= 1
        if self._value < 0:
            running.blocked = True
            self._blocked.append(running)
            return True
        return False

    def signal(self, ready: ReadyQueue) -> Any | None:
        """Release the semaphore; the first blocked thread, if any, becomes ready.

        Returns the unblocked thread, or None when nobody was waiting.
        """
        self._value += 1
        if self._value <= 0 and self._blocked:
            thread = self._blocked.popleft()
            thread.blocked = False
            ready.put(thread)
            return thread
        return None

    def value(self) -> int:
        """Current value of the semaphore."""
        return self._value

    def blocked(self) -> list[Any]:
        """Threads blocked on the semaphore, in the order they will be released."""
        return list(self._blocked)