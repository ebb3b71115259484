# kernsim

`kernsim` is a small simulated kernel written in plain Python. It models the
parts of a teaching operating-system kernel that matter for seeing how one
behaves:

- a first-fit heap allocator working in 64-byte blocks, with coalescing of
  neighbouring free blocks (`kernsim.memory.MemoryAllocator`);
- thread control blocks whose bodies are Python generators (`kernsim.tcb.TCB`);
- a FIFO ready queue and a delta-ordered sleep list
  (`kernsim.queues.ReadyQueue`, `kernsim.queues.SleepList`);
- counting semaphores with a FIFO queue of blocked threads
  (`kernsim.semaphore.KernelSemaphore`);
- bounded character buffers for console input and output
  (`kernsim.buffer.KBuffer`, `kernsim.buffer.ConsoleBuffers`);
- trap causes, system-call codes and the request type threads hand to the
  kernel (`kernsim.traps`), and the handler that serves those requests
  (`kernsim.syscalls.handle_syscall`);
- the kernel itself, which creates threads, dispatches, sleeps, counts timer
  ticks, takes console input and transmits console output
  (`kernsim.kernel.Kernel`);
- the calls a thread body makes, as plain functions (`mem_alloc`,
  `thread_create`, `thread_join`, `sem_open`, `sem_wait`, `sem_signal`,
  `time_sleep`, `getc`, `putc`, ...) and as the classes `Thread`,
  `Semaphore`, `PeriodicThread` and `Console` (`kernsim.api`).

It needs nothing outside the standard library and supports Python 3.10 and
later.

## The heap allocator

Requests are rounded up to whole 64-byte blocks and every block carries a
24-byte header. `alloc` returns the address just past the header.

```python
from kernsim.memory import MemoryAllocator

heap = MemoryAllocator(heap_start=0x1000, heap_end=0x1000 + 64 * 1024)

first = heap.alloc(100)      # rounded up to 128 bytes
second = heap.alloc(64)

heap.free(first)
heap.free(second)            # adjacent free blocks are merged

print(heap.free_blocks())
print(heap.allocated_blocks())
```

`alloc` raises `ValueError` for a size that is not positive and
`MemoryError` when no free block is large enough. `free` raises `ValueError`
for an address that is not a live allocation.

## Helpers

```python
from kernsim.hw import blocks_for, round_to_block
from kernsim.printing import format_int, string_to_int

blocks_for(100)              # 2: number of 64-byte blocks needed
round_to_block(100)          # 128

format_int(255, 16)          # "FF"
format_int(-7, 10, True)     # "-7"
string_to_int("42abc")       # 42: leading digits only
```

## Running threads

A thread body is a function of one argument that returns a generator. Each
call in `kernsim.api` is itself a generator that hands one request to the
kernel and returns the kernel's answer, so bodies use them with
`yield from`:

```python
from kernsim.api import putc, thread_create, thread_join, time_sleep
from kernsim.kernel import Kernel


def worker(text):
    for ch in text:
        yield from putc(ch)
        yield from time_sleep(1)


def main(arg):
    child = yield from thread_create(worker, "ab")
    yield from thread_join(child)


kernel = Kernel()
print(kernel.run(main))      # "ab"
```

`Kernel.run(main, arg, max_steps)` starts `main` as a thread and keeps
stepping threads until it finishes, returning everything transmitted to the
console meanwhile. After every step one timer tick passes (waking sleepers
that are due and preempting a thread whose time slice has run out) and
queued output is transmitted. If `main` has not finished after `max_steps`
steps, `kernsim.kernel.StepLimitExceeded` is raised; exceptions raised by
thread bodies propagate out of `run`.

Other members of `Kernel`:

- `console_input(chars)` delivers typed characters; a thread waiting in
  `getc` receives one directly, the rest are buffered;
- `flush_output()` transmits queued output and returns it; `output` holds
  everything transmitted so far;
- `create_thread`, `create_thread_only`, `schedule_thread`, `delete_thread`,
  `dispatch`, `sleep` and `timer_tick` act on the kernel directly, outside
  any thread.

The class API wraps the same calls. `Thread(body, arg)` runs `body(arg)`;
without a body it runs its own `run` method, which subclasses override.
`PeriodicThread(period)` calls `periodic_activation` every `period` ticks
until `terminate` is called. `Semaphore(init)` is opened with `open()` and
released with `close()`. All of their methods that talk to the kernel are
generators used with `yield from`.

## What it does not do

`kernsim` is a library only: it installs no command and has no interactive
program of its own. Threads never run truly in parallel and are never
interrupted inside a step; time passes only in the simulated timer ticks
between steps. There is no real hardware console: input comes from
`console_input` and output is returned as text.

## Tests

The test suite uses pytest and lives in `tests/`:

```
pip install -e ".[test]"
pytest
```