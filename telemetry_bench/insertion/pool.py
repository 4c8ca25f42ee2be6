"""
Bounded, lazily-populated pool of insert workers.

Checkout order: an idle worker if there is one; otherwise a new worker while
fewer than `max_workers` exist; otherwise block on the condition until a
worker is released or discarded. The condition guards the only shared
bookkeeping (idle list, live count), so live workers never exceed
`max_workers`.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Set

from telemetry_bench.errors import BenchmarkError
from telemetry_bench.insertion.worker import WorkerHandle
from telemetry_bench.utils.logging import get_logger

WorkerFactory = Callable[[int], WorkerHandle]


class WorkerPool:
    def __init__(
        self,
        max_workers: int,
        worker_factory: WorkerFactory,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self._factory = worker_factory
        self._log = logger or get_logger(__name__)
        self._cond = threading.Condition()
        self._idle: List[WorkerHandle] = []
        self._tracked: Set[WorkerHandle] = set()
        # Slots reserved by callers that are still creating their worker.
        self._reserved = 0
        self._closed = False
        self.created_count = 0
        self.peak_live = 0

    @property
    def live_count(self) -> int:
        with self._cond:
            return len(self._tracked) + self._reserved

    @property
    def idle_count(self) -> int:
        with self._cond:
            return len(self._idle)

    def acquire(self, timeout: Optional[float] = None) -> WorkerHandle:
        """
        Check out a worker, creating one on demand.

        Worker creation (thread spawn + connect) happens outside the lock so
        other callers can keep checking workers in and out meanwhile.

        Raises
        ------
        BenchmarkError
            If the pool is closed, or `timeout` elapses while waiting.
        WorkerInitError
            Propagated from the factory when a new worker fails to start.
        """
        with self._cond:
            while True:
                if self._closed:
                    raise BenchmarkError("Worker pool is closed")
                if self._idle:
                    return self._idle.pop()
                if len(self._tracked) + self._reserved < self.max_workers:
                    self._reserved += 1
                    self.created_count += 1
                    worker_id = self.created_count
                    break
                if not self._cond.wait(timeout=timeout):
                    raise BenchmarkError(f"No worker became available within {timeout:g}s")

        try:
            worker = self._factory(worker_id)
        except BaseException:
            with self._cond:
                self._reserved -= 1
                self._cond.notify()
            raise

        with self._cond:
            self._reserved -= 1
            self._tracked.add(worker)
            self.peak_live = max(self.peak_live, len(self._tracked) + self._reserved)
            closed = self._closed
        if closed:
            worker.terminate()
            raise BenchmarkError("Worker pool is closed")
        self._log.debug(
            f"Created worker {worker_id}/{self.max_workers} on demand",
            extra={"worker_id": worker_id},
        )
        return worker

    def release(self, worker: WorkerHandle) -> None:
        """Return a healthy worker to the idle list."""
        with self._cond:
            if self._closed or worker not in self._tracked:
                return
            if worker not in self._idle:
                self._idle.append(worker)
            self._cond.notify()

    def discard(self, worker: WorkerHandle) -> None:
        """Terminate a broken worker and free its slot."""
        worker.terminate()
        with self._cond:
            self._tracked.discard(worker)
            if worker in self._idle:
                self._idle.remove(worker)
            self._cond.notify()

    def close(self, join_timeout: Optional[float] = None) -> int:
        """
        Terminate every tracked worker, idle and checked out.

        Idempotent. Returns the number of workers terminated by this call.
        """
        with self._cond:
            workers = list(self._tracked)
            self._tracked.clear()
            self._idle.clear()
            self._closed = True
            self._cond.notify_all()
        for worker in workers:
            worker.terminate(join_timeout=join_timeout)
        return len(workers)


__all__ = ["WorkerFactory", "WorkerPool"]
