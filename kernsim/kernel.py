"""The simulated kernel: scheduling, sleeping, console I/O and the run loop."""

from __future__ import annotations

from collections import deque
from typing import Any

from kernsim.buffer import ConsoleBuffers
from kernsim.hw import DEFAULT_STACK_SIZE
from kernsim.memory import MemoryAllocator
from kernsim.queues import ReadyQueue, SleepList
from kernsim.semaphore import KernelSemaphore
from kernsim.syscalls import handle_syscall
from kernsim.tcb import TCB, Body
from kernsim.traps import Syscall, SyscallCode

__all__ = [
    "HEAP_START",
    "DEFAULT_HEAP_SIZE",
    "PENDING",
    "StepLimitExceeded",
    "Kernel",
]

HEAP_START = 0x8000_0000
DEFAULT_HEAP_SIZE = 1 << 20
DEFAULT_MAX_STEPS = 1_000_000


class StepLimitExceeded(RuntimeError):
    """Raised when the main thread has not finished within the step budget."""


class _Pending:
    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()
"""Marks a request whose result is delivered later, when the caller resumes."""


class Kernel:
    """A single-processor kernel driving generator-based threads.

    Every step of a thread runs it up to its next request, serves the
    request, then lets one timer tick pass and moves queued console output
    to the transmitted text.
    """

    def __init__(self, heap_size: int = DEFAULT_HEAP_SIZE) -> None:
        if heap_size <= 0:
            raise ValueError(f"heap size must be positive: {heap_size}")
        self.memory = MemoryAllocator(HEAP_START, HEAP_START + heap_size)
        self.ready = ReadyQueue()
        self.sleeping = SleepList()
        self.console = ConsoleBuffers()
        self.semaphores: set[KernelSemaphore] = set()
        self.boot_thread = TCB(None)
        self.idle_thread = TCB(None)
        self.running: TCB = self.boot_thread
        self.ticks = 0
        self.time_slice_counter = 0
        self._results: dict[TCB, Any] = {}
        self._joining: dict[TCB, TCB] = {}
        self._input_waiters: deque[TCB] = deque()
        self._transmitted: list[str] = []

    @property
    def output(self) -> str:
        """Everything the console has transmitted so far."""
        return "".join(self._transmitted)

    def _new_thread(self, body: Body | None, arg: Any) -> TCB:
        stack = self.memory.alloc(DEFAULT_STACK_SIZE)
        return TCB(body, arg, stack + DEFAULT_STACK_SIZE)

    def create_thread(self, body: Body | None, arg: Any = None) -> TCB:
        """Create a thread with its own stack and make it ready if it has a body.

        Raises MemoryError when there is no room for the stack.
        """
        thread = self._new_thread(body, arg)
        if body is not None:
            self.ready.put(thread)
        return thread

    def create_thread_only(self, body: Body | None, arg: Any = None) -> TCB:
        """Create a thread without scheduling it."""
        return self._new_thread(body, arg)

    def schedule_thread(self, thread: TCB) -> None:
        """Make a created thread ready; raises ValueError if it has no body."""
        if thread.body is None:
            raise ValueError(f"thread {thread.id} has no body to schedule")
        self.ready.put(thread)

    def delete_thread(self, thread: TCB) -> None:
        """Release a thread's stack.

        Raises RuntimeError for a thread that is running, ready, sleeping or
        blocked.
        """
        if (
            thread is self.running
            or thread in self.ready
            or thread in self.sleeping
            or thread.blocked
        ):
            raise RuntimeError(f"thread {thread.id} is still in use")
        if thread.stack is not None:
            self.memory.free(thread.stack - DEFAULT_STACK_SIZE)
            thread.stack = None
        self._joining.pop(thread, None)
        self._results.pop(thread, None)

    def dispatch(self) -> None:
        """Give the processor to the next ready thread, or to the idle thread."""
        self.time_slice_counter = 0
        old = self.running
        if old is not self.idle_thread and old.is_runnable():
            self.ready.put(old)

        chosen = self.ready.get()
        if chosen is None or chosen is old:
            if chosen is old:
                self.ready.put(old)
            chosen = self.idle_thread
        self.running = chosen

    def sleep(self, ticks: int) -> None:
        """Put the running thread to sleep for ``ticks`` timer ticks."""
        self.sleeping.put(self.running, ticks)
        self.dispatch()

    def join(self, thread: TCB) -> Any:
        """Make the running thread wait until ``thread`` has finished.

        Returns None if it already has, otherwise PENDING after switching
        away; the waiting thread keeps being scheduled and checks again.
        """
        if thread is self.running:
            raise ValueError("a thread cannot join itself")
        if thread.finished:
            return None
        self._joining[self.running] = thread
        self.dispatch()
        return PENDING

    def timer_tick(self) -> None:
        """Let one timer tick pass: wake due sleepers, preempt on an expired slice."""
        self.ticks += 1
        self.time_slice_counter += 1
        self.sleeping.tick(self.ready)
        if self.time_slice_counter >= self.running.timeslice:
            self.dispatch()

    def getc(self) -> Any:
        """Take one input character, or block the running thread until one comes.

        Returns the character, or PENDING if the caller was blocked.
        """
        if self.console.input.count():
            return self.console.getc()
        thread = self.running
        thread.blocked = True
        self._input_waiters.append(thread)
        self.dispatch()
        return PENDING

    def putc(self, char: str) -> None:
        """Queue one character for output, transmitting first if the queue is full."""
        if self.console.output.count() >= self.console.output.capacity:
            self.flush_output()
        self.console.putc(char)

    def console_input(self, chars: str) -> int:
        """Deliver characters typed at the console.

        A thread blocked in getc receives a character directly; the rest are
        buffered. Characters that find the buffer full are dropped. Returns
        how many were accepted.
        """
        accepted = 0
        for char in chars:
            if self._input_waiters:
                waiter = self._input_waiters.popleft()
                waiter.blocked = False
                self._results[waiter] = char
                self.ready.put(waiter)
            elif self.console.input.count() < self.console.input.capacity:
                self.console.input.put(char)
            else:
                continue
            accepted += 1
        return accepted

    def flush_output(self) -> str:
        """Transmit everything queued for output and return it."""
        text = self.console.output.drain()
        if text:
            self._transmitted.append(text)
        return text

    def _advance(self) -> None:
        thread = self.running
        if thread is self.idle_thread:
            return

        target = self._joining.get(thread)
        if target is not None:
            if not target.finished:
                self.dispatch()
                return
            del self._joining[thread]

        if thread.body is None:
            self.dispatch()
            return

        request = thread.step(self._results.pop(thread, None))
        if thread.finished:
            self.dispatch()
            return
        if request is None:
            request = Syscall.of(SyscallCode.THREAD_DISPATCH)
        result = handle_syscall(self, request)
        if result is not PENDING:
            self._results[thread] = result

    def run(
        self, main: Body, arg: Any = None, max_steps: int = DEFAULT_MAX_STEPS
    ) -> str:
        """Run ``main`` as a thread until it finishes and return the output it caused.

        Raises StepLimitExceeded if it has not finished after ``max_steps``
        steps; exceptions raised by thread bodies propagate.
        """
        if max_steps < 1:
            raise ValueError(f"max_steps must be positive: {max_steps}")
        start = len(self._transmitted)
        thread = self.create_thread(main, arg)
        self._joining[self.boot_thread] = thread
        try:
            for _ in range(max_steps):
                if thread.finished:
                    break
                self._advance()
                self.timer_tick()
                self.flush_output()
            if not thread.finished:
                raise StepLimitExceeded(
                    f"main thread did not finish within {max_steps} steps"
                )
        finally:
            self._joining.pop(self.boot_thread, None)
            self.flush_output()
        return "".join(self._transmitted[start:])