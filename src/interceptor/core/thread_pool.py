"""
=============================================================================
WORKER POOL
=============================================================================

Runs connection handlers on a bounded set of threads.

    accept loop ──submit(conn)──► [ queue (bounded) ] ──► Worker-0
                                                    ├──► Worker-1
                                                    └──► Worker-N (≤ max)

    * min_workers threads start with the pool
    * a new worker is added (up to max_workers) when every worker is busy
      and tasks are waiting
    * a full queue blocks submit(), or rejects when block=False
    * shutdown() sends one None ("poison pill") per worker

Each pipeline run happens entirely on one worker thread. Workers never
share per-request state.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging
import queue
import threading
import time


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives None.

    A task that raises is logged with its traceback and counted as failed;
    the worker keeps running.
    """

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE
        self.tasks_completed = 0
        self.tasks_failed = 0
        self._stop_event = threading.Event()

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._stop_event.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, task: Task) -> None:
        self.state = WorkerState.BUSY
        start = time.time()
        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception as e:
            logger.exception(f"Worker {self.worker_id} task failed after {time.time() - start:.3f}s: {e}")
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def stop(self) -> None:
        self._stop_event.set()


class WorkerPool:
    """
    Bounded thread pool for connection handling.

    Usage:
        pool = WorkerPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        pool.shutdown(wait=True)

    Args:
        min_workers: Threads started up front.
        max_workers: Upper bound when scaling up.
        max_queue: Tasks that may wait for a worker.
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, max_queue: int = 100):
        if min_workers < 1:
            raise ValueError("min_workers must be at least 1")
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue = max_queue

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=max_queue)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._closing = False
        self._next_worker_id = 0

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        logger.info(f"Starting worker pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker_locked()
        self._closing = False
        self._started = True

    def _add_worker_locked(self) -> Worker:
        worker = Worker(self._task_queue, self._next_worker_id)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue func(*args, **kwargs).

        Returns:
            True if queued, False if the queue stayed full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started or self._closing:
            raise RuntimeError("Worker pool is not running")

        try:
            self._task_queue.put(Task(func, args, kwargs or {}), block=block, timeout=queue_timeout)
        except queue.Full:
            logger.warning("Worker pool queue full, task rejected")
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self) -> None:
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if any(w.state == WorkerState.IDLE for w in self._workers):
                return
            if self._task_queue.qsize() == 0:
                return
            logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
            self._add_worker_locked()

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        """
        Stop every worker.

        Args:
            wait: Let queued tasks finish first (bounded by timeout).
            timeout: Seconds to wait for the queue to drain.
        """
        if not self._started:
            return

        logger.info("Shutting down worker pool...")
        self._closing = True

        if wait:
            deadline = time.time() + timeout
            while self._task_queue.unfinished_tasks and time.time() < deadline:
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for _ in workers:
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                break
        for worker in workers:
            worker.stop()
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Worker pool shutdown complete")

    @property
    def stats(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            workers = list(self._workers)
        return {
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state == WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state == WorkerState.IDLE),
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in workers),
                "failed": sum(w.tasks_failed for w in workers),
            },
        }
