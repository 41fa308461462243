#!/usr/bin/env python3
"""
Test the bounded task pool
"""

import sys
import threading
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from llmbench import BenchmarkConfigError, PoolShutdownError, TaskPool


def _slow_square(x, delay_s=0.0):
    if delay_s:
        time.sleep(delay_s)
    return x * x


def test_results_come_back_in_submission_order():
    """Handles resolve in the order they were submitted, not completion order"""
    print("Testing TaskPool.wait_all ordering...")

    with TaskPool(4) as pool:
        # later submissions finish first
        handles = [pool.submit(_slow_square, i, delay_s=(5 - i) * 0.01) for i in range(5)]
        assert TaskPool.wait_all(handles) == [0, 1, 4, 9, 16]

    print("✓ ordering tests passed")


def test_pool_never_exceeds_max_concurrency():
    """At most max_concurrency tasks run at the same time"""
    active = 0
    max_active = 0
    lock = threading.Lock()

    def task():
        nonlocal active, max_active
        with lock:
            active += 1
            max_active = max(max_active, active)
        time.sleep(0.02)
        with lock:
            active -= 1

    with TaskPool(3) as pool:
        TaskPool.wait_all([pool.submit(task) for _ in range(20)])

    assert 1 <= max_active <= 3


def test_submit_after_shutdown_raises():
    pool = TaskPool(2)
    pool.shutdown()
    assert pool.is_shutdown

    with pytest.raises(PoolShutdownError):
        pool.submit(_slow_square, 2)


def test_shutdown_is_idempotent():
    pool = TaskPool(2)
    handle = pool.submit(_slow_square, 3, delay_s=0.02)
    pool.shutdown()
    pool.shutdown()
    # shutdown waits for work already accepted
    assert handle.done()
    assert handle.result() == 9


@pytest.mark.parametrize("value", [0, -1, 1.5, "4", True, None])
def test_invalid_max_concurrency(value):
    with pytest.raises(BenchmarkConfigError):
        TaskPool(value)


def test_concurrent_submitters():
    """Several threads can submit to the same pool"""
    pool = TaskPool(4)
    handles = []
    handles_lock = threading.Lock()

    def submitter(base):
        local = [pool.submit(_slow_square, base + i) for i in range(10)]
        with handles_lock:
            handles.extend(local)

    threads = [threading.Thread(target=submitter, args=(n * 10,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    results = TaskPool.wait_all(handles)
    pool.shutdown()

    assert sorted(results) == [x * x for x in range(40)]


def test_task_exception_surfaces_from_wait_all():
    def boom():
        raise KeyError("missing")

    with TaskPool(1) as pool:
        handle = pool.submit(boom)
        with pytest.raises(KeyError):
            TaskPool.wait_all([handle])


def test_wait_all_updates_progress():
    class Counter:
        def __init__(self):
            self.n = 0

        def update(self, k):
            self.n += k

    counter = Counter()
    with TaskPool(2) as pool:
        TaskPool.wait_all([pool.submit(_slow_square, i) for i in range(6)], counter)
    assert counter.n == 6


def test_context_manager_shuts_down():
    with TaskPool(1) as pool:
        assert not pool.is_shutdown
    assert pool.is_shutdown
