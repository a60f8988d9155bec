"""
=============================================================================
WORKER POOL
=============================================================================

A fixed group of worker threads that run I/O completions pulled from one
shared queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Pool                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Reactor ──submit()──►  ┌──────────────────────┐                   │
    │                          │  Task Queue (FIFO)   │                   │
    │                          │  [t1][t2][t3][t4]... │                   │
    │                          └──────────┬───────────┘                   │
    │                                     │ get()                          │
    │                 ┌───────────────────┼───────────────────┐           │
    │                 ▼                   ▼                   ▼           │
    │            ┌─────────┐         ┌─────────┐         ┌─────────┐      │
    │            │Worker-0 │         │Worker-1 │   ...   │Worker-N │      │
    │            └─────────┘         └─────────┘         └─────────┘      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A task here is a single completion ("socket 7 is readable, run the
session's read handler"), not a whole connection. Any worker may pick up
any session's completion, so the pool size bounds CPU parallelism, not
the number of clients. Sessions protect themselves with their own lock.

=============================================================================
WORKER LIFECYCLE
=============================================================================

    def run(self):
        while not shutdown:
            task = queue.get()      ← BLOCKS until task available
            if task is None:        ← "Poison pill" signals shutdown
                break
            execute(task)           ← Run the completion
            queue.task_done()

To stop, the pool puts one None per worker into the queue.

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
    """Worker thread states, for monitoring."""
    IDLE = "idle"      # Waiting for task
    BUSY = "busy"      # Executing task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

    A failing task is logged and counted; the worker keeps going. One
    session blowing up must never stall completions for the others.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 1.0
    ):
        """
        Initialize the worker.

        Args:
            task_queue: Queue to pull tasks from.
            worker_id: Unique identifier for this worker (for logging).
            idle_timeout: Seconds to wait for a task before checking shutdown.
        """
        # daemon=True: a stuck worker never keeps the process alive
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        # Metrics
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        """Main worker loop. Runs until a poison pill or shutdown()."""
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
        """Run one task with state tracking and exception isolation."""
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop."""
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-size thread pool for I/O completions.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = ThreadPool(workers=8)                                      │
    │   pool.start()                                                       │
    │                                                                      │
    │   pool.submit(session.on_readable)                                   │
    │                                                                      │
    │   print(pool.stats)  # {"workers": {"busy": 3, ...}, ...}           │
    │                                                                      │
    │   pool.shutdown(wait=True)                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    The queue is unbounded: the reactor thread submitting completions
    must never block on a full queue.
    """

    def __init__(self, workers: int = 4, idle_timeout: float = 1.0):
        """
        Initialize the thread pool.

        Args:
            workers: Number of worker threads, created by start().
            idle_timeout: Seconds before idle workers re-check for shutdown.
        """
        if workers < 1:
            raise ValueError("workers must be >= 1")

        self.workers = workers
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue()

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # Protects _workers and the flags
        self._started = False
        self._shutdown = False

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        """Create and start all worker threads."""
        with self._lock:
            if self._started:
                return

            logger.info(f"Starting worker pool with {self.workers} workers")

            for worker_id in range(self.workers):
                worker = Worker(
                    task_queue=self._task_queue,
                    worker_id=worker_id,
                    idle_timeout=self.idle_timeout,
                )
                self._workers.append(worker)
                worker.start()

            self._started = True
            self._shutdown = False

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
    ):
        """
        Queue a function call for execution on some worker.

        Raises:
            RuntimeError: If pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")

        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        self._task_queue.put(Task(func=func, args=args, kwargs=kwargs or {}))

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Shutdown the thread pool.

        Args:
            wait: Let queued tasks finish before stopping the workers.
            timeout: Maximum time to wait for the queue to drain.
        """
        with self._lock:
            if not self._started or self._shutdown:
                return
            self._shutdown = True

        logger.info("Shutting down worker pool...")

        if wait:
            if timeout:
                deadline = time.time() + timeout
                while self._task_queue.unfinished_tasks:
                    if time.time() > deadline:
                        logger.warning("Shutdown timeout, forcing stop")
                        break
                    time.sleep(0.05)
            else:
                self._task_queue.join()

        # One poison pill per worker
        for _ in self._workers:
            self._task_queue.put(None)

        for worker in self._workers:
            worker.shutdown()
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        logger.info("Worker pool shutdown complete")

    # =========================================================================
    # MONITORING: Check pool status
    # =========================================================================

    @property
    def active_workers(self) -> int:
        """Get count of active (non-stopped) workers."""
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        """Get count of busy workers."""
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        """Get count of idle workers."""
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def stats(self) -> dict:
        """Worker and task counts, handy in debug logs."""
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
