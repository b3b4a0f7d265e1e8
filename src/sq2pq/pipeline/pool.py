"""
Worker Pool - Bounded parallel task execution

A fixed number of worker threads pull tasks from one bounded queue.
submit() blocks while the queue is full, which is the only backpressure the
orchestrator gets. shutdown() closes submission, drains queued and in-flight
tasks, and waits for every worker to exit.
"""

import logging
import queue
import threading
from collections.abc import Callable
from typing import Optional, Protocol

from ..cancel import CancellationToken

logger = logging.getLogger(__name__)

# Marks the end of the queue for one worker
_STOP = object()


class Task(Protocol):
    """Unit of work run by a pool worker."""

    def execute(self, cancel_token: CancellationToken, worker: int) -> object:
        ...


# Called after every task with its return value or the exception it raised
CompletionCallback = Callable[[Task, Optional[object], Optional[BaseException]], None]


class WorkerPool:
    """
    Fixed-size thread pool over a bounded task queue.

    Args:
        size: Number of worker threads
        max_tasks: Queue capacity
        cancel_token: Token handed to every task
        on_complete: Optional callback invoked from the worker thread; when set
            it is responsible for reporting task failures
    """

    def __init__(
        self,
        size: int,
        max_tasks: int,
        cancel_token: Optional[CancellationToken] = None,
        on_complete: Optional[CompletionCallback] = None
    ):
        if size < 1:
            raise ValueError("Pool size must be positive")
        if max_tasks < 1:
            raise ValueError("Queue capacity must be positive")

        self.size = size
        self.cancel_token = cancel_token or CancellationToken()
        self.on_complete = on_complete

        self._tasks: queue.Queue = queue.Queue(maxsize=max_tasks)
        self._workers: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._started = False
        self._closed = False

    def start(self) -> None:
        """Launch the worker threads."""
        with self._lock:
            if self._started:
                raise RuntimeError("Pool already started")
            self._started = True

        for w in range(1, self.size + 1):
            worker = threading.Thread(target=self._run, args=(w,), name=f"sq2pq-worker-{w}", daemon=True)
            worker.start()
            self._workers.append(worker)
        logger.debug(f"Started {self.size} workers")

    def submit(self, task: Task) -> None:
        """
        Queue a task, blocking while the queue is full.

        Raises:
            RuntimeError: If the pool is not started or already shut down
        """
        with self._lock:
            if not self._started:
                raise RuntimeError("Pool not started")
            if self._closed:
                raise RuntimeError("Pool is shut down")
        self._tasks.put(task)

    def shutdown(self) -> None:
        """Close submission, drain every task and wait for all workers to exit."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        for _ in self._workers:
            self._tasks.put(_STOP)
        for worker in self._workers:
            worker.join()
        logger.debug("All workers exited")

    def _run(self, worker: int) -> None:
        while True:
            task = self._tasks.get()
            try:
                if task is _STOP:
                    return
                self._execute(task, worker)
            finally:
                self._tasks.task_done()

    def _execute(self, task: Task, worker: int) -> None:
        result = None
        error: Optional[BaseException] = None
        try:
            result = task.execute(self.cancel_token, worker)
        except Exception as e:
            error = e
            # With a callback set, reporting the failure is left to it
            if self.on_complete is None:
                logger.error(f"[worker {worker}] task failed: {e}")

        if self.on_complete is not None:
            try:
                self.on_complete(task, result, error)
            except Exception as e:
                logger.error(f"[worker {worker}] completion callback failed: {e}")

    def __enter__(self) -> "WorkerPool":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
