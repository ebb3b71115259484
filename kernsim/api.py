"""System calls as seen from inside a thread body.

Every call is a generator that hands one request to the kernel and returns
the kernel's answer, so a thread body uses them with ``yield from``::

    def body(arg):
        address = yield from mem_alloc(100)
        yield from mem_free(address)
"""

from __future__ import annotations

import inspect
from typing import Any, Generator

from kernsim.hw import blocks_for
from kernsim.semaphore import KernelSemaphore
from kernsim.tcb import TCB, Body
from kernsim.traps import Syscall, SyscallCode

__all__ = [
    "mem_alloc",
    "mem_free",
    "thread_create",
    "thread_create_only",
    "thread_schedule_only",
    "thread_delete_only",
    "thread_exit",
    "thread_dispatch",
    "thread_join",
    "sem_open",
    "sem_close",
    "sem_wait",
    "sem_signal",
    "time_sleep",
    "getc",
    "putc",
    "Thread",
    "Semaphore",
    "PeriodicThread",
    "Console",
]

Call = Generator[Syscall, Any, Any]


def _call(code: SyscallCode, *args: Any) -> Call:
    return (yield Syscall.of(code, *args))


def mem_alloc(size: int) -> Call:
    """Allocate ``size`` bytes, rounded up to whole blocks; 0 on failure."""
    blocks = blocks_for(size)
    return (yield from _call(SyscallCode.MEM_ALLOC, blocks))


def mem_free(address: int) -> Call:
    """Free an allocation; 0 on success, -1 otherwise."""
    return (yield from _call(SyscallCode.MEM_FREE, address))


def thread_create(body: Body | None, arg: Any = None) -> Call:
    """Create and schedule a thread; returns its handle, or None on failure."""
    return (yield from _call(SyscallCode.THREAD_CREATE, body, arg))


def thread_create_only(body: Body | None, arg: Any = None) -> Call:
    """Create a thread without scheduling it; returns its handle or None."""
    return (yield from _call(SyscallCode.THREAD_CREATE_ONLY, body, arg))


def thread_schedule_only(handle: TCB) -> Call:
    """Schedule a created thread; 0 on success, -1 if it has no body."""
    return (yield from _call(SyscallCode.THREAD_SCHEDULE_ONLY, handle))


def thread_delete_only(handle: TCB) -> Call:
    """Release a thread that is no longer in use; 0 on success, -1 otherwise."""
    return (yield from _call(SyscallCode.THREAD_DELETE_ONLY, handle))


def thread_exit() -> Call:
    """End the calling thread."""
    return (yield from _call(SyscallCode.THREAD_EXIT))


def thread_dispatch() -> Call:
    """Give up the processor to the next ready thread."""
    yield from _call(SyscallCode.THREAD_DISPATCH)


def thread_join(handle: TCB) -> Call:
    """Wait until the thread behind ``handle`` has finished."""
    yield from _call(SyscallCode.THREAD_JOIN, handle)


def sem_open(init: int) -> Call:
    """Open a semaphore with value ``init``; returns its handle or None."""
    return (yield from _call(SyscallCode.SEM_OPEN, init))


def sem_close(handle: KernelSemaphore | None) -> Call:
    """Close a semaphore; 0 on success, -1 for an unknown handle."""
    return (yield from _call(SyscallCode.SEM_CLOSE, handle))


def sem_wait(handle: KernelSemaphore | None) -> Call:
    """Wait on a semaphore; 0 on success, -1 for an unknown handle."""
    return (yield from _call(SyscallCode.SEM_WAIT, handle))


def sem_signal(handle: KernelSemaphore | None) -> Call:
    """Signal a semaphore; 0 on success, -1 for an unknown handle."""
    return (yield from _call(SyscallCode.SEM_SIGNAL, handle))


def time_sleep(ticks: int) -> Call:
    """Sleep for ``ticks`` timer ticks; a zero sleep returns 0 at once."""
    if ticks == 0:
        return 0
    return (yield from _call(SyscallCode.TIME_SLEEP, ticks))


def getc() -> Call:
    """Read one character from the console, waiting for input if needed."""
    return (yield from _call(SyscallCode.GETC))


def putc(char: str) -> Call:
    """Write one character to the console."""
    yield from _call(SyscallCode.PUTC, char)


class Thread:
    """A thread that runs ``body(arg)``, or its own ``run`` when no body is given."""

    def __init__(self, body: Body | None = None, arg: Any = None) -> None:
        self._body = body
        self._arg = arg
        self._handle: TCB | None = None

    @property
    def handle(self) -> TCB | None:
        """The kernel handle, or None before creation and after closing."""
        return self._handle

    @staticmethod
    def _run_entry(thread: Thread) -> Any:
        return thread.run()

    def create(self) -> Call:
        """Create the kernel thread without scheduling it; 0 or -1."""
        if self._handle is not None:
            return 0
        if self._body is not None:
            handle = yield from thread_create_only(self._body, self._arg)
        else:
            handle = yield from thread_create_only(Thread._run_entry, self)
        if handle is None:
            return -1
        self._handle = handle
        return 0

    def start(self) -> Call:
        """Schedule the thread, creating it first if needed; 0 or -1."""
        if self._handle is None:
            status = yield from self.create()
            if status:
                return status
        return (yield from thread_schedule_only(self._handle))

    def join(self) -> Call:
        """Wait until the thread has finished."""
        if self._handle is None:
            raise RuntimeError("thread has not been created")
        yield from thread_join(self._handle)

    def close(self) -> Call:
        """Release the kernel thread; 0 on success, -1 while it is in use."""
        if self._handle is None:
            return 0
        status = yield from thread_delete_only(self._handle)
        if status == 0:
            self._handle = None
        return status

    def run(self) -> Call:
        """Body of a thread created without one; subclasses override it."""
        yield from ()

    @staticmethod
    def dispatch() -> Call:
        """Give up the processor."""
        return thread_dispatch()

    @staticmethod
    def sleep(ticks: int) -> Call:
        """Sleep for ``ticks`` timer ticks."""
        return time_sleep(ticks)


class Semaphore:
    """A kernel semaphore opened on demand."""

    def __init__(self, init: int = 1) -> None:
        if init < 0:
            raise ValueError(f"initial value must not be negative: {init}")
        self._init = init
        self._handle: KernelSemaphore | None = None

    @property
    def handle(self) -> KernelSemaphore | None:
        return self._handle

    def open(self) -> Call:
        """Open the kernel semaphore; 0 on success, -1 otherwise."""
        if self._handle is not None:
            return 0
        handle = yield from sem_open(self._init)
        if handle is None:
            return -1
        self._handle = handle
        return 0

    def close(self) -> Call:
        """Close the kernel semaphore; 0 on success."""
        if self._handle is None:
            return 0
        status = yield from sem_close(self._handle)
        self._handle = None
        return status

    def wait(self) -> Call:
        """Wait on the semaphore; -1 if it is not open."""
        return (yield from sem_wait(self._handle))

    def signal(self) -> Call:
        """Signal the semaphore; -1 if it is not open."""
        return (yield from sem_signal(self._handle))


class PeriodicThread(Thread):
    """A thread that calls ``periodic_activation`` every ``period`` ticks."""

    def __init__(self, period: int) -> None:
        super().__init__()
        self.period = period

    def terminate(self) -> None:
        """Stop after the current period."""
        self.period = 0

    def periodic_activation(self) -> Any:
        """Work done once per period; subclasses override it."""
        yield from ()

    def run(self) -> Call:
        while self.period > 0:
            activation = self.periodic_activation()
            if inspect.isgenerator(activation):
                yield from activation
            yield from self.sleep(self.period)
        yield from thread_exit()


class Console:
    """Console character input and output."""

    @staticmethod
    def getc() -> Call:
        return getc()

    @staticmethod
    def putc(char: str) -> Call:
        return putc(char)