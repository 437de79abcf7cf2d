"""Fixed-size worker pool with a FIFO task queue and a drain barrier."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable

from sqlogger.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

MIN_THREADS = 1
MAX_THREADS = 256

Task = Callable[[], None]


class ThreadPool:
    """Runs submitted callables on ``num_threads`` daemon worker threads.

    The queue is unbounded, so ``enqueue`` never blocks on capacity. A task
    that raises is logged and counted as complete; it never kills its worker.

    Attributes:
        num_threads: Number of worker threads.
    """

    def __init__(self, num_threads: int, name: str = "sqlogger"):
        if not MIN_THREADS <= num_threads <= MAX_THREADS:
            raise InvalidArgumentError(
                f"Thread count must be in [{MIN_THREADS}, {MAX_THREADS}], got {num_threads}",
                operation="thread_pool",
            )
        self.num_threads = num_threads
        self._tasks: deque[Task] = deque()
        self._in_flight = 0
        self._stop = False
        self._lock = threading.Lock()
        self._task_available = threading.Condition(self._lock)
        self._drained = threading.Condition(self._lock)
        self._workers = [
            threading.Thread(target=self._worker, name=f"{name}-worker-{i}", daemon=True)
            for i in range(num_threads)
        ]
        for worker in self._workers:
            worker.start()

    def enqueue(self, task: Task) -> None:
        """Append a task to the queue.

        Raises:
            RuntimeError: If the pool has been shut down.
        """
        with self._lock:
            if self._stop:
                raise RuntimeError("ThreadPool is shut down")
            self._tasks.append(task)
            self._task_available.notify()

    def _worker(self) -> None:
        while True:
            with self._lock:
                while not self._tasks and not self._stop:
                    self._task_available.wait()
                if self._stop:
                    return
                task = self._tasks.popleft()
                self._in_flight += 1
            try:
                task()
            except Exception:
                logger.error("Unhandled exception in pool task", exc_info=True)
            finally:
                with self._lock:
                    self._in_flight -= 1
                    if not self._tasks and self._in_flight == 0:
                        self._drained.notify_all()

    def wait_for_completion(self, timeout: float | None = None) -> bool:
        """Block until the queue is empty and no task is running.

        Args:
            timeout: Seconds to wait at most; None waits forever.

        Returns:
            True if drained, False on timeout.
        """
        with self._lock:
            return self._drained.wait_for(
                lambda: (not self._tasks and self._in_flight == 0) or self._stop,
                timeout=timeout,
            )

    def is_queue_empty(self) -> bool:
        """True when nothing is queued and nothing is running."""
        with self._lock:
            return not self._tasks and self._in_flight == 0

    def pending_count(self) -> int:
        with self._lock:
            return len(self._tasks) + self._in_flight

    def shutdown(self) -> int:
        """Stop the workers and join them.

        Tasks still queued are discarded; running tasks finish first.

        Returns:
            Number of discarded tasks.
        """
        with self._lock:
            if self._stop:
                return 0
            self._stop = True
            discarded = len(self._tasks)
            self._tasks.clear()
            self._task_available.notify_all()
            self._drained.notify_all()
        current = threading.current_thread()
        for worker in self._workers:
            if worker is not current:
                worker.join()
        if discarded:
            logger.warning(f"ThreadPool shut down with {discarded} queued tasks discarded")
        return discarded

    @property
    def is_shut_down(self) -> bool:
        return self._stop
