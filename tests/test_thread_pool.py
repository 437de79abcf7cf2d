"""Tests for the worker pool."""

import threading
import time

import pytest

from sqlogger.errors import InvalidArgumentError
from sqlogger.thread_pool import ThreadPool


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_thread_count_bounds(self):
        """Test that the thread count must be within 1..256."""
        with pytest.raises(InvalidArgumentError):
            ThreadPool(0)
        with pytest.raises(InvalidArgumentError):
            ThreadPool(257)

    def test_runs_all_tasks(self):
        """Test that every enqueued task runs before the barrier returns."""
        pool = ThreadPool(4)
        results = []
        lock = threading.Lock()

        def task(i):
            with lock:
                results.append(i)

        for i in range(100):
            pool.enqueue(lambda i=i: task(i))

        assert pool.wait_for_completion(timeout=5)
        assert sorted(results) == list(range(100))
        assert pool.is_queue_empty()
        assert pool.shutdown() == 0

    def test_single_worker_is_fifo(self):
        """Test FIFO order with one worker."""
        pool = ThreadPool(1)
        results = []
        for i in range(20):
            pool.enqueue(lambda i=i: results.append(i))

        pool.wait_for_completion(timeout=5)
        pool.shutdown()
        assert results == list(range(20))

    def test_failing_task_keeps_worker(self):
        """Test that an exception does not kill the worker."""
        pool = ThreadPool(1)
        results = []

        def boom():
            raise RuntimeError("task failed")

        pool.enqueue(boom)
        pool.enqueue(lambda: results.append("after"))

        assert pool.wait_for_completion(timeout=5)
        assert results == ["after"]
        pool.shutdown()

    def test_shutdown_discards_queue(self):
        """Test that queued tasks are discarded and counted."""
        pool = ThreadPool(1)
        started = threading.Event()
        release = threading.Event()

        def blocker():
            started.set()
            release.wait(5)

        pool.enqueue(blocker)
        started.wait(5)
        for _ in range(3):
            pool.enqueue(lambda: None)
        assert pool.pending_count() == 4

        threading.Timer(0.1, release.set).start()
        assert pool.shutdown() == 3
        assert pool.is_shut_down

    def test_enqueue_after_shutdown(self):
        """Test that a shut down pool rejects work."""
        pool = ThreadPool(2)
        pool.shutdown()

        with pytest.raises(RuntimeError):
            pool.enqueue(lambda: None)
        assert pool.shutdown() == 0

    def test_wait_timeout(self):
        """Test that the barrier gives up after its timeout."""
        pool = ThreadPool(1)
        release = threading.Event()
        pool.enqueue(lambda: release.wait(5))

        start = time.monotonic()
        assert not pool.wait_for_completion(timeout=0.1)
        assert time.monotonic() - start < 2

        release.set()
        pool.shutdown()
