"""Trap causes, system-call codes and the requests threads hand to the kernel."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from kernsim.printing import format_int

__all__ = [
    "ECALL_INSTRUCTION_SIZE",
    "INTERRUPT_BIT",
    "SIP_SSIP",
    "SIP_STIP",
    "SIP_SEIP",
    "SSTATUS_SIE",
    "SSTATUS_SPIE",
    "SSTATUS_SPP",
    "SyscallCode",
    "TrapCause",
    "Syscall",
    "describe_trap",
]

# Every instruction is four bytes wide, so an ecall resumes four bytes later.
ECALL_INSTRUCTION_SIZE = 4

INTERRUPT_BIT = 1 << 63

# Bits of the sip register.
SIP_SSIP = 1 << 1
SIP_STIP = 1 << 5
SIP_SEIP = 1 << 9

# Bits of the sstatus register.
SSTATUS_SIE = 1 << 1
SSTATUS_SPIE = 1 << 5
SSTATUS_SPP = 1 << 8


class SyscallCode(enum.IntEnum):
    """Numbers that select a kernel service on an environment call."""

    MEM_ALLOC = 0x01
    MEM_FREE = 0x02
    THREAD_DELETE_ONLY = 0x0E
    THREAD_CREATE_ONLY = 0x0F
    THREAD_SCHEDULE_ONLY = 0x10
    THREAD_CREATE = 0x11
    THREAD_EXIT = 0x12
    THREAD_DISPATCH = 0x13
    THREAD_JOIN = 0x14
    SEM_OPEN = 0x21
    SEM_CLOSE = 0x22
    SEM_WAIT = 0x23
    SEM_SIGNAL = 0x24
    TIME_SLEEP = 0x31
    GETC = 0x41
    PUTC = 0x42
    FLUSH_OUTPUT = 0xFE
    RETURN_TO_SYSTEM = 0xFF


class TrapCause(enum.IntEnum):
    """Values of scause that the trap handler tells apart."""

    ILLEGAL_INSTRUCTION = 0x2
    ECALL_FROM_USER = 0x8
    ECALL_FROM_SUPERVISOR = 0x9
    SOFTWARE_INTERRUPT = INTERRUPT_BIT | 0x1
    EXTERNAL_INTERRUPT = INTERRUPT_BIT | 0x9

    @property
    def is_interrupt(self) -> bool:
        """True for asynchronous causes, False for exceptions."""
        return bool(self.value & INTERRUPT_BIT)

    @property
    def is_ecall(self) -> bool:
        return self in (TrapCause.ECALL_FROM_USER, TrapCause.ECALL_FROM_SUPERVISOR)

    def resume_address(self, sepc: int) -> int:
        """Address execution continues at once the trap has been handled."""
        return sepc + ECALL_INSTRUCTION_SIZE if self.is_ecall else sepc


@dataclass(frozen=True)
class Syscall:
    """A request a thread makes of the kernel.

    ``code`` becomes a SyscallCode when it names a known service; any other
    number is kept as is and is served as a plain dispatch.
    """

    code: int
    args: tuple[Any, ...] = field(default=())

    def __post_init__(self) -> None:
        if not isinstance(self.code, int) or isinstance(self.code, bool):
            raise TypeError(f"system call code must be an integer: {self.code!r}")
        try:
            code: int = SyscallCode(self.code)
        except ValueError:
            code = int(self.code)
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "args", tuple(self.args))

    @classmethod
    def of(cls, code: int, *args: Any) -> Syscall:
        """Build a request from a code and positional arguments."""
        return cls(code, args)

    @property
    def known(self) -> bool:
        """True when the code names a kernel service."""
        return isinstance(self.code, SyscallCode)


def describe_trap(scause: int, stval: int, sepc: int) -> str:
    """Text the kernel prints for a trap it does not otherwise handle.

    Register values are printed as 32-bit unsigned decimals.
    """
    if scause == TrapCause.ILLEGAL_INSTRUCTION:
        return f"\n SCAUSE: {format_int(scause)} (illegal instruction) \n"
    return (
        f"\n SCAUSE: {format_int(scause)}"
        f"\n STVAL: {format_int(stval)}"
        f"\n SEPC: {format_int(sepc)}"
        "\n"
    )