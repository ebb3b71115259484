"""Kernel side of the environment call: one handler per system-call code."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from kernsim.hw import MEM_BLOCK_SIZE
from kernsim.semaphore import KernelSemaphore
from kernsim.traps import Syscall, SyscallCode

if TYPE_CHECKING:
    from kernsim.kernel import Kernel

__all__ = ["handle_syscall"]

_Handler = Callable[..., Any]
_HANDLERS: dict[SyscallCode, tuple[int, _Handler]] = {}


def _handles(code: SyscallCode, arity: int) -> Callable[[_Handler], _Handler]:
    def register(handler: _Handler) -> _Handler:
        _HANDLERS[code] = (arity, handler)
        return handler

    return register


@_handles(SyscallCode.MEM_ALLOC, 1)
def _mem_alloc(kernel: Kernel, blocks: int) -> int:
    try:
        return kernel.memory.alloc(blocks * MEM_BLOCK_SIZE)
    except (ValueError, MemoryError):
        return 0


@_handles(SyscallCode.MEM_FREE, 1)
def _mem_free(kernel: Kernel, address: int) -> int:
    try:
        kernel.memory.free(address)
    except ValueError:
        return -1
    return 0


@_handles(SyscallCode.THREAD_DELETE_ONLY, 1)
def _thread_delete_only(kernel: Kernel, handle: Any) -> int:
    try:
        kernel.delete_thread(handle)
    except (ValueError, RuntimeError):
        return -1
    return 0


@_handles(SyscallCode.THREAD_CREATE_ONLY, 2)
def _thread_create_only(kernel: Kernel, body: Any, arg: Any) -> Any:
    try:
        return kernel.create_thread_only(body, arg)
    except MemoryError:
        return None


@_handles(SyscallCode.THREAD_SCHEDULE_ONLY, 1)
def _thread_schedule_only(kernel: Kernel, handle: Any) -> int:
    try:
        kernel.schedule_thread(handle)
    except ValueError:
        return -1
    return 0


@_handles(SyscallCode.THREAD_CREATE, 2)
def _thread_create(kernel: Kernel, body: Any, arg: Any) -> Any:
    try:
        return kernel.create_thread(body, arg)
    except MemoryError:
        return None


@_handles(SyscallCode.THREAD_EXIT, 0)
def _thread_exit(kernel: Kernel) -> int:
    kernel.running.finished = True
    kernel.dispatch()
    return 0


@_handles(SyscallCode.THREAD_DISPATCH, 0)
def _thread_dispatch(kernel: Kernel) -> None:
    kernel.dispatch()


@_handles(SyscallCode.THREAD_JOIN, 1)
def _thread_join(kernel: Kernel, handle: Any) -> Any:
    try:
        return kernel.join(handle)
    except ValueError:
        return -1


@_handles(SyscallCode.SEM_OPEN, 1)
def _sem_open(kernel: Kernel, init: int) -> KernelSemaphore | None:
    try:
        semaphore = KernelSemaphore(init)
    except ValueError:
        return None
    kernel.semaphores.add(semaphore)
    return semaphore


@_handles(SyscallCode.SEM_CLOSE, 1)
def _sem_close(kernel: Kernel, handle: Any) -> int:
    if handle not in kernel.semaphores:
        return -1
    kernel.semaphores.discard(handle)
    return 0


@_handles(SyscallCode.SEM_WAIT, 1)
def _sem_wait(kernel: Kernel, handle: Any) -> int:
    if handle not in kernel.semaphores:
        return -1
    if handle.wait(kernel.running):
        kernel.dispatch()
    return 0


@_handles(SyscallCode.SEM_SIGNAL, 1)
def _sem_signal(kernel: Kernel, handle: Any) -> int:
    if handle not in kernel.semaphores:
        return -1
    handle.signal(kernel.ready)
    return 0


@_handles(SyscallCode.TIME_SLEEP, 1)
def _time_sleep(kernel: Kernel, ticks: int) -> int:
    try:
        kernel.sleep(ticks)
    except ValueError:
        return -1
    return 0


@_handles(SyscallCode.GETC, 0)
def _getc(kernel: Kernel) -> Any:
    return kernel.getc()


@_handles(SyscallCode.PUTC, 1)
def _putc(kernel: Kernel, char: str) -> None:
    kernel.putc(char)


@_handles(SyscallCode.FLUSH_OUTPUT, 0)
def _flush_output(kernel: Kernel) -> None:
    kernel.flush_output()


@_handles(SyscallCode.RETURN_TO_SYSTEM, 0)
def _return_to_system(kernel: Kernel) -> None:
    return None


def handle_syscall(kernel: Kernel, call: Syscall) -> Any:
    """Serve one request on behalf of ``kernel.running`` and return its result.

    The result is what the calling thread receives: an address (0 on failure)
    for MEM_ALLOC; 0 or -1 for MEM_FREE, THREAD_DELETE_ONLY,
    THREAD_SCHEDULE_ONLY, SEM_CLOSE, SEM_WAIT, SEM_SIGNAL and TIME_SLEEP; a
    handle (None on failure) for THREAD_CREATE, THREAD_CREATE_ONLY and
    SEM_OPEN; a character or the kernel's pending marker for GETC; None for
    the rest. A code the kernel does not know is served as a dispatch.

    Raises TypeError for a malformed request.
    """
    if not isinstance(call, Syscall):
        raise TypeError(f"expected a Syscall, got {call!r}")
    if not call.known:
        kernel.dispatch()
        return None
    arity, handler = _HANDLERS[call.code]
    if len(call.args) != arity:
        raise TypeError(
            f"{call.code.name} takes {arity} argument(s), got {len(call.args)}"
        )
    return handler(kernel, *call.args)