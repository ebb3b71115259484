"""A simulated teaching kernel: heap allocator, generator threads, scheduling, semaphores and console."""

__version__ = "0.1.0"

__all__ = [
    "api",
    "buffer",
    "hw",
    "kernel",
    "memory",
    "printing",
    "queues",
    "semaphore",
    "syscalls",
    "tcb",
    "traps",
]