"""
Parallel bulk inserter.

Splits a (possibly lazy) record stream into bounded chunks, each chunk into
fixed-size batches, and fans the batches out to a WorkerPool through up to
`worker_count` concurrent pullers. A chunk is fully drained before the next one
is pulled from the input, which bounds memory regardless of dataset size.

Failure policy is fail-fast: the first failed, timed-out or unstartable batch
aborts the call, terminates every worker and propagates with the progress made
so far attached to the exception.

Usage:
    from telemetry_bench.insertion.inserter import ParallelInserter

    inserter = ParallelInserter(worker_count=4)
    inserter.initialize()
    try:
        report = inserter.submit_stream(stream, 50_000, DatabaseTarget.POSTGRESQL, config)
    finally:
        inserter.cleanup()
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass
from itertools import islice
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sized

from telemetry_bench.config import ConnectionConfig, get_settings
from telemetry_bench.data.generator import SeededDataGenerator
from telemetry_bench.domain.models import DatabaseTarget, SyntheticRecord
from telemetry_bench.errors import BatchInsertError, BenchmarkError
from telemetry_bench.infrastructure.adapters import DatabaseAdapter, create_adapter
from telemetry_bench.insertion.pool import WorkerPool
from telemetry_bench.insertion.worker import AdapterFactory, Batch, InsertJob, WorkerHandle
from telemetry_bench.utils.cancellation import CancellationToken
from telemetry_bench.utils.logging import get_logger
from telemetry_bench.utils.profiler import MemoryMonitor, estimate_chunk_bytes
from telemetry_bench.utils.progress import ProgressCallback, ProgressReporter

DEFAULT_MIN_CHUNK = 100_000
DEFAULT_MAX_CHUNK = 500_000


class MemoryCheck(Protocol):
    def check(self) -> bool: ...

    def check_before(self, operation: str, additional_bytes: int) -> bool: ...


def default_adapter_factory(
    target: DatabaseTarget, config: Optional[ConnectionConfig]
) -> DatabaseAdapter:
    """Build an adapter, falling back to the configured instance for `target`."""
    if config is None:
        settings = get_settings()
        if target is DatabaseTarget.CLICKHOUSE:
            config = settings.clickhouse_config()
        else:
            config = settings.postgres_config()
    return create_adapter(target, config)


def chunk_window(
    batch_size: int,
    worker_count: int,
    min_chunk: int = DEFAULT_MIN_CHUNK,
    max_chunk: int = DEFAULT_MAX_CHUNK,
) -> int:
    """Records materialised per chunk: enough to keep every worker busy twice over."""
    return min(max_chunk, max(batch_size * worker_count * 2, min_chunk))


@dataclass
class InsertionReport:
    database_target: str
    records_processed: int = 0
    batches: int = 0
    chunks: int = 0
    workers_created: int = 0
    peak_workers: int = 0
    duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def throughput(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.records_processed / self.duration_seconds

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["throughput_records_per_sec"] = round(self.throughput, 2)
        return payload


class _Tally:
    """Counters owned by one submit_stream call."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records = 0
        self.batches = 0

    def add(self, records: int) -> int:
        with self._lock:
            self.records += records
            self.batches += 1
            return self.batches

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {"records_inserted": self.records, "batches_completed": self.batches}


class ParallelInserter:
    """
    Bounded worker-pool batch inserter.

    Parameters
    ----------
    worker_count : int
        Upper bound on concurrent workers (and connections).
    adapter_factory : callable | None
        `(target, db_config) -> DatabaseAdapter`, invoked once per worker.
    batch_timeout : float
        Seconds a single batch may take before the run is aborted.
    worker_init_timeout : float
        Seconds a new worker may take to spawn and connect.
    progress_callback : callable | None
        Receives ProgressUpdate objects, at most one per `progress_interval`.
    memory_check_every : int
        Run the memory check after every N completed batches.
    """

    def __init__(
        self,
        worker_count: int = 4,
        *,
        adapter_factory: Optional[AdapterFactory] = None,
        batch_timeout: float = 300.0,
        worker_init_timeout: float = 15.0,
        progress_callback: Optional[ProgressCallback] = None,
        progress_interval: float = 0.5,
        memory_check_every: int = 10,
        memory_monitor: Optional[MemoryCheck] = None,
        min_chunk: int = DEFAULT_MIN_CHUNK,
        max_chunk: int = DEFAULT_MAX_CHUNK,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        self.worker_count = worker_count
        self.batch_timeout = batch_timeout
        self.worker_init_timeout = worker_init_timeout
        self.progress_interval = progress_interval
        self.memory_check_every = max(1, memory_check_every)
        self.min_chunk = min_chunk
        self.max_chunk = max_chunk
        self._adapter_factory = adapter_factory or default_adapter_factory
        self._progress_callback = progress_callback
        self._memory_monitor = memory_monitor
        self._log = logger or get_logger(__name__)

        self._pool: Optional[WorkerPool] = None
        self._target = DatabaseTarget.POSTGRESQL
        self._db_config: Optional[ConnectionConfig] = None

    @property
    def pool(self) -> Optional[WorkerPool]:
        return self._pool

    def initialize(self, max_workers: Optional[int] = None) -> None:
        """Prepare bookkeeping. No worker is created until a batch needs one."""
        if max_workers is not None:
            if max_workers < 1:
                raise ValueError(f"max_workers must be >= 1, got {max_workers}")
            self.worker_count = max_workers
        if self._pool is None:
            self._pool = WorkerPool(self.worker_count, self._spawn_worker, logger=self._log)
        self._log.debug(
            f"Parallel inserter ready (up to {self.worker_count} workers, lazy creation)"
        )

    def chunk_window(self, batch_size: int) -> int:
        return chunk_window(batch_size, self.worker_count, self.min_chunk, self.max_chunk)

    def submit_stream(
        self,
        records: Iterable[SyntheticRecord],
        batch_size: int,
        database_target: DatabaseTarget | str,
        db_config: Optional[ConnectionConfig] = None,
        *,
        total: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> InsertionReport:
        """
        Insert every record of `records`, in submission order, in batches.

        Returns
        -------
        InsertionReport
            Counts and timing. `cancelled` is True when the token stopped the
            run at a chunk boundary.

        Raises
        ------
        BatchInsertError, BenchmarkTimeoutError, WorkerInitError
            On the first failure, after `cleanup()`, with `progress` attached.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        target = DatabaseTarget(database_target)
        if total is None and isinstance(records, Sized):
            total = len(records)
        if self._pool is None:
            self.initialize()
        self._target, self._db_config = target, db_config
        tally = _Tally()

        window = self.chunk_window(batch_size)
        report = InsertionReport(database_target=target.value)
        reporter = ProgressReporter(
            self._progress_callback, total=total, interval=self.progress_interval
        )
        monitor = self._monitor()
        start = time.perf_counter()
        iterator = iter(records)
        next_batch_index = 0
        try:
            monitor.check_before(f"insert into {target.value}", estimate_chunk_bytes(window))
            self._log.info(
                f"[INSERT START] {target.value}",
                extra={
                    "database": target.value,
                    "total": total,
                    "batch_size": batch_size,
                    "workers": self.worker_count,
                    "chunk_size": window,
                },
            )
            while True:
                if cancel_token is not None and cancel_token.cancelled:
                    report.cancelled = True
                    self._log.warning(
                        f"[INSERT CANCELLED] {target.value} after {tally.records} records",
                        extra={"reason": cancel_token.reason},
                    )
                    break
                chunk = list(islice(iterator, window))
                if not chunk:
                    break
                batches = [
                    Batch(index=next_batch_index + i, records=chunk[offset : offset + batch_size])
                    for i, offset in enumerate(range(0, len(chunk), batch_size))
                ]
                next_batch_index += len(batches)
                report.chunks += 1
                self._log.debug(
                    f"Processing chunk {report.chunks}: {len(chunk)} records, "
                    f"{len(batches)} batches"
                )
                self._insert_chunk(batches, tally, reporter, monitor)
                del chunk, batches
        except BaseException as exc:
            progress = _progress(tally, start)
            if isinstance(exc, BenchmarkError):
                exc.progress.update(progress)
            self._log.error(
                f"[INSERT FAILED] {target.value}: {exc}",
                extra={"database": target.value, **progress},
            )
            self.cleanup()
            raise

        reporter.complete()
        report.records_processed = tally.records
        report.batches = tally.batches
        report.duration_seconds = time.perf_counter() - start
        if self._pool is not None:
            report.workers_created = self._pool.created_count
            report.peak_workers = self._pool.peak_live
        self._log.info(
            f"[INSERT COMPLETE] {target.value}: {report.records_processed} records in "
            f"{report.duration_seconds:.1f}s ({report.throughput:.0f} records/sec)",
            extra=report.to_dict(),
        )
        return report

    def cleanup(self) -> None:
        """Terminate every worker, idle or in flight. Safe to call repeatedly."""
        pool, self._pool = self._pool, None
        if pool is None:
            return
        terminated = pool.close(join_timeout=1.0)
        self._log.debug(f"Terminated {terminated} insert workers")

    def _spawn_worker(self, worker_id: int) -> WorkerHandle:
        worker = WorkerHandle(
            worker_id,
            self._target,
            self._db_config,
            self._adapter_factory,
            logger=self._log,
        )
        worker.start(timeout=self.worker_init_timeout)
        return worker

    def _monitor(self) -> MemoryCheck:
        if self._memory_monitor is None:
            settings = get_settings()
            self._memory_monitor = MemoryMonitor(
                warning_threshold=settings.memory_warning_threshold, logger=self._log
            )
        return self._memory_monitor

    def _insert_chunk(
        self,
        batches: List[Batch],
        tally: _Tally,
        reporter: ProgressReporter,
        monitor: MemoryCheck,
    ) -> None:
        claim_lock = threading.Lock()
        abort = threading.Event()
        next_index = 0

        def _claim() -> Optional[Batch]:
            nonlocal next_index
            with claim_lock:
                if abort.is_set() or next_index >= len(batches):
                    return None
                batch = batches[next_index]
                next_index += 1
                return batch

        def _pull() -> None:
            while True:
                batch = _claim()
                if batch is None:
                    return
                try:
                    self._run_batch(batch, tally, reporter, monitor)
                except BaseException:
                    abort.set()
                    raise

        pullers = min(self.worker_count, len(batches))
        executor = ThreadPoolExecutor(max_workers=pullers, thread_name_prefix="insert-puller")
        failed = False
        try:
            futures: List[Future[None]] = [executor.submit(_pull) for _ in range(pullers)]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                exc = future.exception()
                if exc is not None:
                    failed = True
                    raise exc
        finally:
            # On failure, pullers still waiting on a worker are left to drain
            # on their own; cleanup() unblocks them.
            executor.shutdown(wait=not failed, cancel_futures=True)

    def _run_batch(
        self,
        batch: Batch,
        tally: _Tally,
        reporter: ProgressReporter,
        monitor: MemoryCheck,
    ) -> None:
        pool = self._pool
        if pool is None:
            raise BenchmarkError("Inserter was cleaned up while batches were pending")
        worker = pool.acquire()
        job = InsertJob(
            batch=batch,
            database_target=self._target,
            job_id=batch.index,
            db_config=self._db_config,
        )
        try:
            result = worker.execute(job, timeout=self.batch_timeout)
        except BenchmarkError:
            # Timed-out or dead workers are never reused.
            pool.discard(worker)
            raise
        pool.release(worker)

        if not result.success:
            raise BatchInsertError(
                f"Batch {batch.index} failed: {result.error}", job_id=result.job_id
            )

        completed = tally.add(len(batch))
        reporter.update(len(batch))
        if completed % self.memory_check_every == 0:
            monitor.check()


def _progress(tally: _Tally, start: float) -> Dict[str, Any]:
    progress: Dict[str, Any] = dict(tally.snapshot())
    progress["elapsed_seconds"] = round(time.perf_counter() - start, 3)
    return progress


def insert_generated(
    count: int,
    database_target: DatabaseTarget | str,
    db_config: Optional[ConnectionConfig] = None,
    *,
    seed: Optional[str] = None,
    batch_size: Optional[int] = None,
    worker_count: Optional[int] = None,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    adapter_factory: Optional[AdapterFactory] = None,
) -> InsertionReport:
    """
    Generate `count` seeded records and bulk-load them, using settings defaults.

    Workers are always cleaned up, whether the load succeeds, fails or is
    cancelled.
    """
    settings = get_settings()
    stream = SeededDataGenerator(seed or settings.benchmark_seed).generate(count)
    inserter = ParallelInserter(
        worker_count or settings.parallel_workers,
        adapter_factory=adapter_factory,
        batch_timeout=settings.batch_timeout_seconds,
        worker_init_timeout=settings.worker_init_timeout_seconds,
        progress_callback=progress_callback,
        progress_interval=settings.progress_interval_seconds,
        memory_check_every=settings.memory_check_every_batches,
        min_chunk=settings.chunk_min_records,
        max_chunk=settings.chunk_max_records,
    )
    inserter.initialize()
    try:
        return inserter.submit_stream(
            stream,
            batch_size or settings.batch_size,
            database_target,
            db_config,
            total=count,
            cancel_token=cancel_token,
        )
    finally:
        inserter.cleanup()


__all__ = [
    "InsertionReport",
    "ParallelInserter",
    "chunk_window",
    "default_adapter_factory",
    "insert_generated",
]
