"""Thread control blocks for cooperative, generator-driven threads."""

from __future__ import annotations

import inspect
import itertools
from typing import Any, Callable, Generator

from kernsim.hw import DEFAULT_TIME_SLICE

__all__ = ["Body", "TCB"]

Body = Callable[[Any], Any]

_thread_ids = itertools.count()


class TCB:
    """Thread control block.

    A thread body is called with its argument. If it returns a generator, the
    thread runs by stepping that generator: each value it yields is a request
    to the kernel, and the kernel's answer is sent back on the next step. A
    body that is a plain function runs to completion in its first step.
    """

    def __init__(
        self,
        body: Body | None,
        arg: Any = None,
        stack: int | None = None,
        timeslice: int = DEFAULT_TIME_SLICE,
    ) -> None:
        if timeslice < 1:
            raise ValueError(f"time slice must be positive: {timeslice}")
        self.id = next(_thread_ids)
        self.body = body
        self.arg = arg
        self.stack = stack
        self.timeslice = timeslice
        self.finished = False
        self.blocked = False
        self.sleeping = False
        self._routine: Generator[Any, Any, Any] | None = None

    def step(self, value: Any = None) -> Any:
        """Run the thread until its next request and return that request.

        ``value`` is delivered as the result of the previous request; it is
        ignored on the first step. Returns None once the body has finished.
        """
        if self.finished:
            raise RuntimeError(f"thread {self.id} has already finished")

        if self._routine is None:
            if self.body is None:
                raise RuntimeError(f"thread {self.id} has no body to run")
            try:
                result = self.body(self.arg)
            except Exception:
                self.finished = True
                raise
            if not inspect.isgenerator(result):
                self.finished = True
                return None
            self._routine = result
            value = None

        try:
            return self._routine.send(value)
        except StopIteration:
            self.finished = True
            self._routine = None
            return None
        except Exception:
            self.finished = True
            self._routine = None
            raise

    def is_runnable(self) -> bool:
        """True when the thread may be put back into the ready queue."""
        return not (self.finished or self.blocked or self.sleeping)

    def __repr__(self) -> str:
        state = "finished" if self.finished else (
            "blocked" if self.blocked else ("sleeping" if self.sleeping else "ready")
        )
        return f"TCB(id={self.id}, {state})"