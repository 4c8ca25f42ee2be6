from __future__ import annotations

import threading
import time
from typing import List

import pytest

from telemetry_bench.domain.models import DatabaseTarget
from telemetry_bench.errors import BenchmarkError, BenchmarkTimeoutError, WorkerInitError
from telemetry_bench.insertion.pool import WorkerPool
from telemetry_bench.insertion.worker import Batch, InsertJob, WorkerHandle

MAX_WORKERS = 2


class _FakeWorker:
    def __init__(self, worker_id: int) -> None:
        self.worker_id = worker_id
        self.terminate_calls = 0

    def terminate(self, join_timeout=None) -> None:
        del join_timeout
        self.terminate_calls += 1


class _FakeAdapter:
    target = DatabaseTarget.POSTGRESQL
    name = "fake"

    def __init__(self, *, connect_delay: float = 0.0, insert_delay: float = 0.0) -> None:
        self.connect_delay = connect_delay
        self.insert_delay = insert_delay
        self.connected = False
        self.disconnect_calls = 0
        self.inserted: List[int] = []

    def connect(self) -> None:
        time.sleep(self.connect_delay)
        self.connected = True

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    def insert_batch(self, records) -> None:
        time.sleep(self.insert_delay)
        self.inserted.extend(records)


def _pool_with_fakes(created: List[_FakeWorker]) -> WorkerPool:
    def factory(worker_id: int) -> _FakeWorker:
        worker = _FakeWorker(worker_id)
        created.append(worker)
        return worker

    return WorkerPool(MAX_WORKERS, factory)  # type: ignore[arg-type]


def test_pool_creates_workers_lazily_up_to_bound() -> None:
    created: List[_FakeWorker] = []
    pool = _pool_with_fakes(created)
    assert created == []

    first = pool.acquire()
    second = pool.acquire()
    assert {first.worker_id, second.worker_id} == {1, 2}
    assert pool.live_count == MAX_WORKERS

    pool.release(first)
    again = pool.acquire()
    assert again is first
    assert len(created) == MAX_WORKERS
    assert pool.peak_live == MAX_WORKERS


def test_acquire_blocks_until_release() -> None:
    created: List[_FakeWorker] = []
    pool = _pool_with_fakes(created)
    held = [pool.acquire(), pool.acquire()]
    got: List[_FakeWorker] = []

    waiter = threading.Thread(target=lambda: got.append(pool.acquire()))
    waiter.start()
    time.sleep(0.05)
    assert got == []

    pool.release(held[0])
    waiter.join(timeout=2)
    assert got == [held[0]]
    assert len(created) == MAX_WORKERS


def test_acquire_timeout_raises() -> None:
    pool = _pool_with_fakes([])
    pool.acquire()
    pool.acquire()
    with pytest.raises(BenchmarkError):
        pool.acquire(timeout=0.01)


def test_discard_frees_slot_for_new_worker() -> None:
    created: List[_FakeWorker] = []
    pool = _pool_with_fakes(created)
    broken = pool.acquire()
    pool.acquire()

    pool.discard(broken)
    replacement = pool.acquire(timeout=1)

    assert broken.terminate_calls == 1
    assert replacement.worker_id == 3
    assert pool.live_count == MAX_WORKERS


def test_factory_failure_releases_reservation() -> None:
    attempts = []

    def factory(worker_id: int):
        attempts.append(worker_id)
        if len(attempts) == 1:
            raise WorkerInitError("boom")
        return _FakeWorker(worker_id)

    pool = WorkerPool(1, factory)  # type: ignore[arg-type]
    with pytest.raises(WorkerInitError):
        pool.acquire()
    assert pool.live_count == 0
    assert pool.acquire(timeout=1).worker_id == 2


def test_close_terminates_idle_and_checked_out_and_is_idempotent() -> None:
    created: List[_FakeWorker] = []
    pool = _pool_with_fakes(created)
    idle = pool.acquire()
    pool.acquire()
    pool.release(idle)

    assert pool.close() == MAX_WORKERS
    assert pool.close() == 0
    assert all(w.terminate_calls == 1 for w in created)
    with pytest.raises(BenchmarkError):
        pool.acquire()


def test_worker_handle_round_trip_and_disconnects_on_terminate() -> None:
    adapter = _FakeAdapter()
    handle = WorkerHandle(1, DatabaseTarget.POSTGRESQL, None, lambda target, cfg: adapter)
    handle.start(timeout=2)

    batch = Batch(0, [1, 2, 3])  # type: ignore[arg-type]
    job = InsertJob(batch, DatabaseTarget.POSTGRESQL, job_id=7)
    result = handle.execute(job, timeout=2)

    assert result.success is True
    assert result.job_id == 7
    assert result.records == 3
    assert adapter.inserted == [1, 2, 3]

    handle.terminate(join_timeout=2)
    handle.terminate(join_timeout=2)
    assert adapter.disconnect_calls == 1


def test_worker_handle_reports_insert_failure_as_result() -> None:
    class _Failing(_FakeAdapter):
        def insert_batch(self, records) -> None:
            raise RuntimeError("disk full")

    handle = WorkerHandle(1, DatabaseTarget.POSTGRESQL, None, lambda target, cfg: _Failing())
    handle.start(timeout=2)
    result = handle.execute(
        InsertJob(Batch(0, [1]), DatabaseTarget.POSTGRESQL, job_id=1),  # type: ignore[arg-type]
        timeout=2,
    )
    handle.terminate()

    assert result.success is False
    assert "disk full" in (result.error or "")


def test_worker_handle_connect_failure_is_init_error() -> None:
    class _Unreachable(_FakeAdapter):
        def connect(self) -> None:
            raise ConnectionRefusedError("no route")

    handle = WorkerHandle(1, DatabaseTarget.POSTGRESQL, None, lambda target, cfg: _Unreachable())
    with pytest.raises(WorkerInitError, match="no route"):
        handle.start(timeout=2)


def test_worker_handle_handshake_timeout() -> None:
    adapter = _FakeAdapter(connect_delay=0.5)
    handle = WorkerHandle(1, DatabaseTarget.POSTGRESQL, None, lambda target, cfg: adapter)
    with pytest.raises(WorkerInitError, match="timeout"):
        handle.start(timeout=0.05)
    assert handle.broken is True


def test_worker_handle_job_timeout_marks_broken() -> None:
    adapter = _FakeAdapter(insert_delay=0.3)
    handle = WorkerHandle(1, DatabaseTarget.POSTGRESQL, None, lambda target, cfg: adapter)
    handle.start(timeout=2)

    with pytest.raises(BenchmarkTimeoutError):
        handle.execute(
            InsertJob(Batch(0, [1]), DatabaseTarget.POSTGRESQL, job_id=1),  # type: ignore[arg-type]
            timeout=0.01,
        )
    assert handle.broken is True
    handle.terminate()
