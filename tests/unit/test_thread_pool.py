"""
Unit tests for the worker thread pool.
"""

import threading

import pytest

from formserver.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(min_workers=2, max_workers=4, queue_size=10)
    pool.start()
    yield pool
    pool.shutdown()


class TestThreadPool:

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=0)
        with pytest.raises(ValueError):
            ThreadPool(min_workers=4, max_workers=2)

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(print)

    def test_starts_min_workers(self, pool: ThreadPool):
        assert pool.worker_count == 2

    def test_runs_tasks(self, pool: ThreadPool):
        done = threading.Event()
        results = []

        def task(value, suffix=""):
            results.append(f"{value}{suffix}")
            done.set()

        assert pool.submit(task, args=("a",), kwargs={"suffix": "!"})
        assert done.wait(timeout=5.0)
        assert results == ["a!"]

    def test_failing_task_does_not_kill_worker(self, pool: ThreadPool):
        done = threading.Event()

        def broken():
            raise RuntimeError("boom")

        pool.submit(broken)
        pool.submit(done.set)

        assert done.wait(timeout=5.0)
        assert pool.worker_count == 2

    def test_scales_up_when_busy(self, pool: ThreadPool):
        release = threading.Event()
        started = threading.Semaphore(0)

        def block():
            started.release()
            release.wait(timeout=5.0)

        try:
            for _ in range(2):
                pool.submit(block)
            for _ in range(2):
                assert started.acquire(timeout=5.0)

            # Both workers are busy, so queued work brings in a new one.
            pool.submit(block)
            assert pool.worker_count == 3
        finally:
            release.set()

    def test_full_queue_rejects(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(timeout=5.0)

        try:
            assert pool.submit(block)
            assert started.wait(timeout=5.0)
            assert pool.submit(block)        # waits in the queue
            assert not pool.submit(block)    # queue full
        finally:
            release.set()
            pool.shutdown()

    def test_shutdown_stops_workers(self):
        pool = ThreadPool(min_workers=2, max_workers=2)
        pool.start()
        pool.shutdown()

        assert pool.worker_count == 0
        with pytest.raises(RuntimeError):
            pool.submit(print)
