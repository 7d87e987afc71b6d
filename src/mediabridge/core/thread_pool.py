"""
=============================================================================
CONNECTION WORKER POOL
=============================================================================

Every accepted connection is handed to a worker thread, which reads the
single request, runs it through the handlers and writes the response.

Handlers in this server BLOCK: a thumbnail request can sit for up to the
8-second high-quality timeout, and an export waits for the store to
finish copying. The pool keeps those waits off the accept loop:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit──► [ queue (bounded) ] ──► Worker-0  ┐       │
    │                                                 ──► Worker-1  │ idle │
    │                                                 ──► Worker-2  │ or   │
    │                                                 ──► ...       ┘ busy │
    │                                                                      │
    │   all workers busy AND tasks waiting → spawn one more (≤ max)       │
    │   queue full → submit() returns False → caller answers 503          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

SHUTDOWN uses poison pills: one None per worker is queued after the
pending tasks, and each worker exits when it pulls one.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call: "run func(*args, **kwargs) on a worker".

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: When the task was queued.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that pulls tasks from the shared queue until it gets a
    poison pill (None) or is told to shut down.

    A task that raises is logged; the worker keeps running. Every queued
    task runs, however long it waited: a connection task must always
    answer its client.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        waited = start_time - task.submitted_at
        if waited > 1.0:
            logger.debug(f"Worker {self.worker_id} picked up a task queued {waited:.2f}s ago")

        try:
            task.func(*task.args, **task.kwargs)

            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed task in {elapsed:.3f}s")

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded, self-scaling pool of worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16, max_queue=100)
        pool.start()

        if not pool.submit(handle_connection, args=(conn,), block=False):
            reject(conn)            # queue full

        pool.shutdown(wait=True)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        max_queue: int = 100,
        idle_timeout: float = 60.0
    ):
        """
        Args:
            min_workers: Workers created at start() and kept running.
            max_workers: Upper bound when scaling up under load.
            max_queue: Capacity of the task queue; a full queue makes
                       non-blocking submit() return False.
            idle_timeout: How often an idle worker re-checks for shutdown.
        """
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("Need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue = max_queue
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=max_queue)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        """Create the minimum set of workers."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False

        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker()

        self._started = True

    def _spawn_worker(self) -> Worker:
        # Caller holds self._lock.
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a task for execution.

        Args:
            func: The function to execute.
            args: Positional arguments.
            kwargs: Keyword arguments.
            block: Wait for queue space when the queue is full.
            queue_timeout: How long to wait for space when blocking.

        Returns:
            True if the task was queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")

        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Add one worker when every worker is busy and tasks are waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._spawn_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting tasks and stop the workers.

        Args:
            wait: Let queued tasks finish first.
            timeout: Upper bound on the wait for queued tasks.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while self._task_queue.unfinished_tasks:
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass

        for worker in workers:
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")
