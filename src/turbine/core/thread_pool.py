"""
=============================================================================
THREAD POOL IMPLEMENTATION
=============================================================================

A fixed set of worker threads that handle accepted connections.

=============================================================================
WHY A FIXED POOL?
=============================================================================

Spawning a thread per connection has no upper bound: a burst of 10,000
clients means 10,000 threads. A pool caps concurrency at a number chosen
at startup and reuses the threads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Thread Pool                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop                                                        │
    │       │                                                              │
    │       │ submit(process_connection, conn)                             │
    │       ▼                                                              │
    │   ┌───────────────┐   all N slots taken?                             │
    │   │  SLOTS (N)    │── yes ──► submit() BLOCKS until a task ends     │
    │   └───────┬───────┘                                                  │
    │           │ no                                                       │
    │           ▼                                                          │
    │   ┌───────────────────────────────────────────────────────────┐     │
    │   │  TASK QUEUE  (never holds more than N tasks)              │     │
    │   └───────────────────────┬───────────────────────────────────┘     │
    │                           ▼                                          │
    │   ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐               │
    │   │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │  (N threads)  │
    │   └──────────┘ └──────────┘ └──────────┘ └──────────┘               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BACKPRESSURE
=============================================================================

The slot semaphore is sized to the number of workers. submit() takes a
slot, the worker gives it back when the task finishes (success or
failure). So submit() returns immediately while a worker is free and
blocks the accept loop once every worker is busy. Further clients wait
in the kernel's listen backlog instead of in our memory.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker thread states, for monitoring."""
    IDLE = "idle"        # Waiting for task
    BUSY = "busy"        # Executing task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        submitted_at: Submission time, used to log queue wait.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

    Loop:
        1. Block on the queue
        2. None is the poison pill: exit
        3. Run the task, logging any exception so the worker survives
        4. Release the submission slot and mark the task done
    """

    def __init__(
        self,
        task_queue: "queue.Queue[Optional[Task]]",
        slots: threading.Semaphore,
        worker_id: int,
    ):
        # daemon=True: workers never keep the process alive on exit
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.slots = slots
        self.worker_id = worker_id

        self.state = WorkerState.IDLE

        # Metrics
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            task = self.task_queue.get()
            if task is None:
                self.task_queue.task_done()
                break

            try:
                self._execute_task(task)
            finally:
                self.slots.release()
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """Run one task with state tracking and exception logging."""
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in "
                f"{time.time() - start_time:.3f}s "
                f"(queued {start_time - task.submitted_at:.3f}s)"
            )
        except Exception as e:
            # One bad task must not take the worker down with it
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after "
                f"{time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Fixed-size thread pool with blocking submission.

    Usage:
        pool = ThreadPool(num_workers=8)
        pool.start()

        pool.submit(process_connection, args=(conn,))   # blocks if all busy

        print(pool.stats)
        pool.shutdown()
    """

    def __init__(self, num_workers: int = 4):
        """
        Args:
            num_workers: Number of worker threads. Fixed for the pool's
                         lifetime; also the number of tasks that may be
                         pending or running at once.
        """
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")

        self.num_workers = num_workers

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue()
        self._slots = threading.BoundedSemaphore(num_workers)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False

    def start(self):
        """Create and start all workers. Calling it twice is a no-op."""
        with self._lock:
            if self._started:
                return

            logger.info(f"Starting thread pool with {self.num_workers} workers")

            for worker_id in range(self.num_workers):
                worker = Worker(self._task_queue, self._slots, worker_id)
                self._workers.append(worker)
                worker.start()

            self._started = True
            self._shutdown = False

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Submit a task for execution.

        Args:
            func: The function to execute.
            args: Positional arguments for the function.
            kwargs: Keyword arguments for the function.
            block: Wait for a free worker when all are busy.
            timeout: Maximum wait when blocking. None waits forever.

        Returns:
            True if the task was queued, False if no worker became free
            (only possible with block=False or a timeout).

        Raises:
            RuntimeError: The pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        if not self._slots.acquire(blocking=block, timeout=timeout if block else None):
            return False

        self._task_queue.put(Task(func=func, args=args, kwargs=kwargs or {}))
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the workers.

        Args:
            wait: Join the workers after queueing the poison pills, so
                  tasks already submitted finish first.
            timeout: Per-worker join timeout.
        """
        with self._lock:
            if not self._started:
                return
            self._shutdown = True

        logger.info("Shutting down thread pool...")

        # One poison pill per worker, queued behind any pending tasks
        for _ in self._workers:
            self._task_queue.put(None)

        if wait:
            for worker in self._workers:
                worker.join(timeout=timeout)

        with self._lock:
            self._workers.clear()
            self._started = False

        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

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
        """Worker and task counts."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
