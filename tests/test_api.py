from collections import deque

import pytest

from kernsim.api import (
    Console,
    PeriodicThread,
    Semaphore,
    Thread,
    getc,
    mem_alloc,
    mem_free,
    putc,
    sem_close,
    sem_open,
    sem_signal,
    sem_wait,
    thread_create,
    thread_create_only,
    thread_dispatch,
    thread_join,
    thread_schedule_only,
    time_sleep,
)
from kernsim.kernel import HEAP_START, Kernel
from kernsim.traps import Syscall, SyscallCode


def _locked_writer(lock):
    def write(text):
        yield from sem_wait(lock)
        for ch in text:
            yield from putc(ch)
        yield from sem_signal(lock)

    return write


def _fibonacci(n):
    if n in (0, 1):
        return n
    if n % 10 == 0:
        yield from thread_dispatch()
    first = yield from _fibonacci(n - 1)
    second = yield from _fibonacci(n - 2)
    return first + second


def _finish(gen, value):
    with pytest.raises(StopIteration) as info:
        gen.send(value)
    return info.value.value


def _drain(gen):
    requests = []
    try:
        while True:
            requests.append(next(gen))
    except StopIteration as stop:
        return requests, stop.value


# --- bodies run by the kernel ---------------------------------------------


def _alloc_free_main(results):
    address = yield from mem_alloc(100)
    results["address"] = address
    results["free"] = yield from mem_free(address)
    results["again"] = yield from mem_free(address)
    results["zero"] = yield from mem_alloc(0)


def _schedule_without_body_main(results):
    handle = yield from thread_create_only(None, None)
    results["schedule"] = yield from thread_schedule_only(handle)


def _closed_semaphore_main(results):
    handle = yield from sem_open(1)
    results["close"] = yield from sem_close(handle)
    results["wait"] = yield from sem_wait(handle)


def _four_workers_main(finished):
    def main(_):
        lock = yield from sem_open(1)
        write = _locked_writer(lock)

        def worker_a(_):
            for i in range(3):
                yield from write(f"A: i={i}\n")
                for _ in range(4):
                    yield from thread_dispatch()
            yield from write("A finished!\n")
            finished["A"] = True

        def worker_b(_):
            for i in range(5):
                yield from write(f"B: i={i}\n")
                for _ in range(4):
                    yield from thread_dispatch()
            yield from write("B finished!\n")
            finished["B"] = True
            yield from thread_dispatch()

        def worker_c(_):
            for i in range(3):
                yield from write(f"C: i={i}\n")
            yield from write("C: dispatch\n")
            yield from thread_dispatch()
            result = yield from _fibonacci(12)
            yield from write(f"C: fibonaci={result}\n")
            for i in range(3, 6):
                yield from write(f"C: i={i}\n")
            yield from write("C finished!\n")
            finished["C"] = True
            yield from thread_dispatch()

        def worker_d(_):
            for i in range(10, 13):
                yield from write(f"D: i={i}\n")
            yield from write("D: dispatch\n")
            yield from thread_dispatch()
            result = yield from _fibonacci(16)
            yield from write(f"D: fibonaci={result}\n")
            for i in range(13, 16):
                yield from write(f"D: i={i}\n")
            yield from write("D finished!\n")
            finished["D"] = True
            yield from thread_dispatch()

        for name, body in zip("ABCD", (worker_a, worker_b, worker_c, worker_d)):
            yield from thread_create(body, None)
            yield from write(f"Thread{name} created\n")

        while not all(finished.values()):
            yield from thread_dispatch()

    return main


def _sleepy_main(finished):
    def main(_):
        lock = yield from sem_open(1)
        write = _locked_writer(lock)

        def sleepy(sleep_time):
            for _ in range(5):
                yield from write(f"Hello {sleep_time} !\n")
                yield from time_sleep(sleep_time)
            finished[sleep_time // 10 - 1] = True

        for sleep_time in (10, 20):
            yield from thread_create(sleepy, sleep_time)
        while not all(finished):
            yield from thread_dispatch()

    return main


class _Buffer:
    def __init__(self, capacity):
        self.capacity = capacity
        self.items = deque()
        self.item_available = None
        self.space_available = None
        self.mutex = None

    def open(self):
        self.item_available = yield from sem_open(0)
        self.space_available = yield from sem_open(self.capacity)
        self.mutex = yield from sem_open(1)

    def put(self, value):
        yield from sem_wait(self.space_available)
        yield from sem_wait(self.mutex)
        self.items.append(value)
        yield from sem_signal(self.mutex)
        yield from sem_signal(self.item_available)

    def get(self):
        yield from sem_wait(self.item_available)
        yield from sem_wait(self.mutex)
        value = self.items.popleft()
        yield from sem_signal(self.mutex)
        yield from sem_signal(self.space_available)
        return value

    def count(self):
        yield from sem_wait(self.mutex)
        count = len(self.items)
        yield from sem_signal(self.mutex)
        return count


def _consumer_producer_main(thread_num, size, state, consumed):
    def producer_keyboard(data):
        while True:
            key = yield from getc()
            if key == "\x1b":
                break
            yield from data["buffer"].put(key)
        state["end"] = True
        yield from data["buffer"].put("!")
        yield from sem_signal(data["wait"])

    def producer(data):
        i = 0
        while not state["end"]:
            yield from data["buffer"].put(str(data["id"]))
            i += 1
            if i % (10 * data["id"]) == 0:
                yield from thread_dispatch()
        yield from sem_signal(data["wait"])

    def consumer(data):
        buffer = data["buffer"]
        i = 0
        while not state["end"]:
            consumed.append((yield from buffer.get()))
            i += 1
            if i % (5 * data["id"]) == 0:
                yield from thread_dispatch()
        while (yield from buffer.count()) > 0:
            consumed.append((yield from buffer.get()))
        yield from sem_signal(data["wait"])

    def main(_):
        buffer = _Buffer(size)
        state["buffer"] = buffer
        yield from buffer.open()
        wait_for_all = yield from sem_open(0)
        yield from thread_create(
            consumer, {"id": thread_num, "buffer": buffer, "wait": wait_for_all}
        )
        for i in range(thread_num):
            data = {"id": i, "buffer": buffer, "wait": wait_for_all}
            yield from thread_create(producer if i else producer_keyboard, data)
        yield from thread_dispatch()
        for _ in range(thread_num + 1):
            yield from sem_wait(wait_for_all)
        yield from sem_close(wait_for_all)

    return main


class _Worker(Thread):
    def __init__(self, name, rounds, log):
        super().__init__()
        self.name = name
        self.rounds = rounds
        self.log = log
        self.done = False

    def run(self):
        for i in range(self.rounds):
            self.log.append(f"{self.name}{i}")
            yield from Thread.dispatch()
        self.done = True


def _start_and_close_main(workers, results):
    def main(_):
        for worker in workers:
            results["start"].append((yield from worker.start()))
        while not all(worker.done for worker in workers):
            yield from Thread.dispatch()
        for worker in workers:
            results["close"].append((yield from worker.close()))

    return main


def _logging_child(log):
    for i in range(3):
        log.append(f"c{i}")
        yield from thread_dispatch()


def _start_join_main(events):
    thread = Thread(_logging_child, events)
    yield from thread.start()
    yield from thread.join()
    events.append("joined")


def _sleeping_child(events):
    yield from time_sleep(5)
    events.append("child")


def _join_handle_main(events):
    handle = yield from thread_create(_sleeping_child, events)
    yield from thread_join(handle)
    events.append("main")


def _semaphore_order_main(semaphore, events, results):
    def child(_):
        yield from semaphore.wait()
        events.append("child")

    def main(_):
        results["open"] = yield from semaphore.open()
        handle = yield from thread_create(child, None)
        for _ in range(3):
            yield from thread_dispatch()
        events.append("main")
        results["signal"] = yield from semaphore.signal()
        yield from thread_join(handle)
        results["close"] = yield from semaphore.close()

    return main


class _Reporter(PeriodicThread):
    def __init__(self, period):
        super().__init__(period)
        self.activations = 0

    def periodic_activation(self):
        self.activations += 1
        for ch in "on\n":
            yield from putc(ch)


def _user_main1(reporter):
    yield from reporter.start()
    yield from Thread.dispatch()
    yield from time_sleep(100)
    reporter.terminate()
    yield from reporter.join()
    for ch in "done\n":
        yield from putc(ch)


def _upper_echo(_):
    for _ in range(2):
        ch = yield from Console.getc()
        yield from Console.putc(ch.upper())


# --- requests -------------------------------------------------------------


@pytest.mark.parametrize("size, blocks", [(1, 1), (64, 1), (65, 2), (100, 2), (128, 2)])
def test_mem_alloc_requests_whole_blocks(size, blocks):
    assert next(mem_alloc(size)) == Syscall.of(SyscallCode.MEM_ALLOC, blocks)


def test_mem_alloc_rejects_negative_size():
    with pytest.raises(ValueError):
        next(mem_alloc(-1))


def test_thread_create_request_carries_body_and_arg():
    def body(arg):
        return None

    request = next(thread_create(body, 7))
    assert request.code == SyscallCode.THREAD_CREATE
    assert request.args == (body, 7)


def test_time_sleep_zero_makes_no_request():
    assert _drain(time_sleep(0)) == ([], 0)


def test_time_sleep_request_and_result():
    gen = time_sleep(5)
    assert next(gen) == Syscall.of(SyscallCode.TIME_SLEEP, 5)
    assert _finish(gen, 0) == 0


def test_getc_returns_delivered_character():
    gen = getc()
    assert next(gen).code == SyscallCode.GETC
    assert _finish(gen, "x") == "x"


def test_join_unstarted_thread_raises():
    with pytest.raises(RuntimeError):
        next(Thread(lambda arg: None).join())


def test_semaphore_rejects_negative_init():
    with pytest.raises(ValueError):
        Semaphore(-1)


# --- against the kernel ---------------------------------------------------


def test_mem_alloc_and_free_in_kernel():
    results = {}
    assert Kernel().run(_alloc_free_main, results) == ""
    assert results["address"] >= HEAP_START
    assert results["free"] == 0
    assert results["again"] == -1
    assert results["zero"] == 0


def test_schedule_only_without_body_fails():
    results = {}
    assert Kernel().run(_schedule_without_body_main, results) == ""
    assert results["schedule"] == -1


def test_closed_semaphore_rejects_wait():
    results = {}
    assert Kernel().run(_closed_semaphore_main, results) == ""
    assert results == {"close": 0, "wait": -1}


def test_threads_c_api_four_workers():
    finished = dict.fromkeys("ABCD", False)
    output = Kernel().run(_four_workers_main(finished))
    lines = output.splitlines()
    assert all(finished.values())
    assert "C: fibonaci=144" in lines
    assert "D: fibonaci=987" in lines
    assert [line for line in lines if line.startswith("A: i=")] == [
        "A: i=0",
        "A: i=1",
        "A: i=2",
    ]
    assert [line for line in lines if line.startswith("C: i=")] == [
        f"C: i={i}" for i in range(6)
    ]
    assert [line for line in lines if line.startswith("D: i=")] == [
        f"D: i={i}" for i in range(10, 16)
    ]
    assert sum(line.endswith("created") for line in lines) == 4


def test_thread_sleep_c_api():
    finished = [False, False]
    kernel = Kernel()
    lines = kernel.run(_sleepy_main(finished)).splitlines()
    assert lines.count("Hello 10 !") == 5
    assert lines.count("Hello 20 !") == 5
    assert kernel.ticks >= 100
    last_10 = max(i for i, line in enumerate(lines) if line == "Hello 10 !")
    last_20 = max(i for i, line in enumerate(lines) if line == "Hello 20 !")
    assert last_10 < last_20


def test_consumer_producer_c_api():
    thread_num, size = 3, 5
    state = {"end": False}
    consumed = []

    kernel = Kernel()
    assert kernel.console_input("hello\x1b") == 6
    kernel.run(_consumer_producer_main(thread_num, size, state, consumed))

    everything = consumed + list(state["buffer"].items)
    assert "".join(c for c in everything if c.isalpha()) == "hello"
    assert everything.count("!") == 1
    assert set(everything) <= set("hello!12")


def test_threads_cpp_api_start_and_close():
    log = []
    workers = [_Worker("A", 3, log), _Worker("B", 4, log), _Worker("C", 2, log)]
    results = {"start": [], "close": []}

    assert Kernel().run(_start_and_close_main(workers, results)) == ""
    assert results["start"] == [0, 0, 0]
    assert results["close"] == [0, 0, 0]
    assert [entry for entry in log if entry[0] == "A"] == ["A0", "A1", "A2"]
    assert [entry for entry in log if entry[0] == "B"] == ["B0", "B1", "B2", "B3"]
    assert [worker.handle for worker in workers] == [None, None, None]


def test_thread_with_body_join():
    events = []
    assert Kernel().run(_start_join_main, events) == ""
    assert events == ["c0", "c1", "c2", "joined"]


def test_thread_join_by_handle():
    events = []
    assert Kernel().run(_join_handle_main, events) == ""
    assert events == ["child", "main"]


def test_semaphore_class_orders_threads():
    events = []
    semaphore = Semaphore(0)
    results = {}

    Kernel().run(_semaphore_order_main(semaphore, events, results))
    assert events == ["main", "child"]
    assert results == {"open": 0, "signal": 0, "close": 0}
    assert semaphore.handle is None


def test_periodic_thread_user_main1():
    reporter = _Reporter(30)
    output = Kernel().run(_user_main1, reporter)
    assert output.endswith("done\n")
    assert output.count("on\n") == reporter.activations
    assert 2 <= reporter.activations <= 4
    assert reporter.period == 0
    assert reporter.handle.finished is True


def test_console_echo():
    kernel = Kernel()
    kernel.console_input("ab")
    assert kernel.run(_upper_echo) == "AB"