"""Ready queue and delta-encoded sleep list used by the scheduler."""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterator

__all__ = ["ReadyQueue", "SleepList"]


class ReadyQueue:
    """FIFO queue of threads that are ready to run."""

    def __init__(self) -> None:
        self._queue: deque[Any] = deque()

    def put(self, thread: Any) -> None:
        """Append ``thread`` to the tail of the queue."""
        self._queue.append(thread)

    def get(self) -> Any | None:
        """Remove and return the thread at the head, or None if the queue is empty."""
        return self._queue.popleft() if self._queue else None

    def head(self) -> Any | None:
        """Return the thread at the head without removing it, or None."""
        return self._queue[0] if self._queue else None

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[Any]:
        return iter(tuple(self._queue))

    def __contains__(self, thread: object) -> bool:
        return any(entry is thread for entry in self._queue)


@dataclass
class _Sleeper:
    thread: Any
    delta: int


class SleepList:
    """Sleeping threads ordered by wake-up time.

    Each entry stores its delay relative to the entry before it, so a timer
    tick only has to touch the head of the list.
    """

    def __init__(self) -> None:
        self._entries: list[_Sleeper] = []

    def put(self, thread: Any, ticks: int) -> None:
        """Put ``thread`` to sleep for ``ticks`` timer ticks."""
        if ticks < 0:
            raise ValueError(f"sleep time must not be negative: {ticks}")
        thread.sleeping = True

        remaining = ticks
        index = 0
        if self._entries and not ticks < self._entries[0].delta:
            remaining -= self._entries[0].delta
            index = 1
            while index < len(self._entries) and remaining > self._entries[index].delta:
                remaining -= self._entries[index].delta
                index += 1

        self._entries.insert(index, _Sleeper(thread, remaining))
        if index + 1 < len(self._entries):
            self._entries[index + 1].delta -= remaining

    def wake(self, ready: ReadyQueue) -> list[Any]:
        """Wake the head and every following thread due at the same time.

        Woken threads are put into ``ready`` and returned in wake-up order.
        """
        woken: list[Any] = []
        if not self._entries:
            return woken
        while True:
            entry = self._entries.pop(0)
            entry.thread.sleeping = False
            ready.put(entry.thread)
            woken.append(entry.thread)
            if not self._entries or self._entries[0].delta > 0:
                break
        return woken

    def tick(self, ready: ReadyQueue) -> list[Any]:
        """Advance time by one tick and wake whatever has become due."""
        if not self._entries:
            return []
        self._entries[0].delta -= 1
        if self._entries[0].delta <= 0:
            return self.wake(ready)
        return []

    def head(self) -> Any | None:
        """Return the thread that wakes first, or None if nobody sleeps."""
        return self._entries[0].thread if self._entries else None

    def remaining(self) -> list[tuple[Any, int]]:
        """Return ``(thread, ticks_left)`` pairs in wake-up order."""
        totals = itertools.accumulate(entry.delta for entry in self._entries)
        return [(entry.thread, total) for entry, total in zip(self._entries, totals)]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, thread: object) -> bool:
        return any(entry.thread is thread for entry in self._entries)