"""
Insert workers.

A WorkerHandle is a small actor: one daemon thread that owns one database
adapter, an inbox of InsertJob messages and an outbox of InsertResult
messages. The coordinating thread talks to it only through `execute()`, which
posts a job and waits for exactly one result with a deadline. Nothing else is
shared, so a worker never needs a lock.

Lifecycle:
    handle = WorkerHandle(1, DatabaseTarget.POSTGRESQL, config, create_adapter)
    handle.start(timeout=15)      # spawn + connect + handshake
    result = handle.execute(job, timeout=300)
    handle.terminate()            # idempotent
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from telemetry_bench.config import ConnectionConfig
from telemetry_bench.domain.models import DatabaseTarget, SyntheticRecord
from telemetry_bench.errors import BenchmarkTimeoutError, WorkerInitError
from telemetry_bench.infrastructure.adapters import DatabaseAdapter
from telemetry_bench.utils.logging import get_logger

AdapterFactory = Callable[[DatabaseTarget, Optional[ConnectionConfig]], DatabaseAdapter]


@dataclass(frozen=True)
class Batch:
    """Ordered slice of records; the unit of work sent to a worker."""

    index: int
    records: Sequence[SyntheticRecord]

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class InsertJob:
    batch: Batch
    database_target: DatabaseTarget
    job_id: int
    db_config: Optional[ConnectionConfig] = None


@dataclass(frozen=True)
class InsertResult:
    job_id: int
    success: bool
    error: Optional[str] = None
    duration: float = 0.0
    records: int = 0


@dataclass(frozen=True)
class _Ready:
    pass


@dataclass(frozen=True)
class _InitFailed:
    error: str


_STOP = object()


class WorkerHandle:
    """
    Thread-backed insert worker with a dedicated connection.

    Parameters
    ----------
    worker_id : int
        Sequential id, used in thread names and log records.
    database_target : DatabaseTarget
        Backend the initial connection is opened against.
    db_config : ConnectionConfig | None
        Connection block for the initial connection.
    adapter_factory : callable
        `(target, db_config) -> DatabaseAdapter`; called inside the worker
        thread so the connection is created and used by the same thread.
    """

    def __init__(
        self,
        worker_id: int,
        database_target: DatabaseTarget,
        db_config: Optional[ConnectionConfig],
        adapter_factory: AdapterFactory,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.worker_id = worker_id
        self._key: Tuple[DatabaseTarget, Optional[ConnectionConfig]] = (database_target, db_config)
        self._adapter_factory = adapter_factory
        self._log = logger or get_logger(__name__)
        self._inbox: "queue.Queue[object]" = queue.Queue()
        self._outbox: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._terminated = False
        self.broken = False
        self.jobs_completed = 0

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._terminated

    def start(self, timeout: float) -> None:
        """
        Spawn the thread and wait for the connect handshake.

        Raises
        ------
        WorkerInitError
            If the adapter cannot be created or connected, or the handshake
            does not arrive within `timeout` seconds.
        """
        self._thread = threading.Thread(
            target=self._run, name=f"insert-worker-{self.worker_id}", daemon=True
        )
        try:
            self._thread.start()
        except RuntimeError as exc:
            self._terminated = True
            raise WorkerInitError(f"Worker {self.worker_id} could not be spawned: {exc}") from exc

        try:
            message = self._outbox.get(timeout=timeout)
        except queue.Empty:
            self.broken = True
            self.terminate()
            raise WorkerInitError(
                f"Worker {self.worker_id} initialization timeout after {timeout:g}s; "
                "try increasing WORKER_INIT_TIMEOUT_SECONDS"
            ) from None

        if isinstance(message, _InitFailed):
            self._terminated = True
            raise WorkerInitError(f"Worker {self.worker_id} initialization failed: {message.error}")
        self._log.debug(f"Worker {self.worker_id} ready", extra={"worker_id": self.worker_id})

    def execute(self, job: InsertJob, timeout: float) -> InsertResult:
        """
        Send one job and wait for its result.

        A worker that misses the deadline is marked broken and must be
        discarded; it is never reused or retried.
        """
        if not self.alive or self.broken:
            raise WorkerInitError(f"Worker {self.worker_id} is not running")
        self._inbox.put(job)
        try:
            result = self._outbox.get(timeout=timeout)
        except queue.Empty:
            self.broken = True
            raise BenchmarkTimeoutError(
                f"Job {job.job_id} timed out after {timeout:g}s on worker {self.worker_id}"
            ) from None
        assert isinstance(result, InsertResult)
        return result

    def terminate(self, join_timeout: Optional[float] = None) -> None:
        """Ask the thread to exit; safe to call any number of times."""
        if self._terminated:
            return
        self._terminated = True
        self._inbox.put(_STOP)
        if join_timeout is not None and self._thread is not None:
            self._thread.join(timeout=join_timeout)

    # Everything below runs on the worker thread.

    def _connect(self, key: Tuple[DatabaseTarget, Optional[ConnectionConfig]]) -> DatabaseAdapter:
        adapter = self._adapter_factory(*key)
        adapter.connect()
        return adapter

    def _run(self) -> None:
        try:
            adapter = self._connect(self._key)
        except Exception as exc:  # noqa: BLE001 - reported to the coordinator via handshake
            self._outbox.put(_InitFailed(f"{type(exc).__name__}: {exc}"))
            return

        self._outbox.put(_Ready())
        try:
            while True:
                message = self._inbox.get()
                if message is _STOP:
                    break
                assert isinstance(message, InsertJob)
                adapter, result = self._process(adapter, message)
                self._outbox.put(result)
        finally:
            self._disconnect(adapter)

    def _process(
        self, adapter: DatabaseAdapter, job: InsertJob
    ) -> Tuple[DatabaseAdapter, InsertResult]:
        start = time.perf_counter()
        try:
            key = (job.database_target, job.db_config if job.db_config else self._key[1])
            if key != self._key:
                self._disconnect(adapter)
                adapter = self._connect(key)
                self._key = key
            adapter.insert_batch(job.batch.records)
        except Exception as exc:  # noqa: BLE001 - failures travel back as InsertResult
            return adapter, InsertResult(
                job_id=job.job_id,
                success=False,
                error=f"{type(exc).__name__}: {exc}",
                duration=time.perf_counter() - start,
            )
        self.jobs_completed += 1
        return adapter, InsertResult(
            job_id=job.job_id,
            success=True,
            duration=time.perf_counter() - start,
            records=len(job.batch),
        )

    def _disconnect(self, adapter: DatabaseAdapter) -> None:
        try:
            adapter.disconnect()
        except Exception as exc:  # noqa: BLE001 - connection may already be gone
            self._log.warning(
                f"Worker {self.worker_id}: error disconnecting: {exc}",
                extra={"worker_id": self.worker_id},
            )


__all__ = [
    "AdapterFactory",
    "Batch",
    "InsertJob",
    "InsertResult",
    "WorkerHandle",
]
