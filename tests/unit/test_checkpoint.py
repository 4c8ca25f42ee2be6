from __future__ import annotations

from datetime import datetime, timedelta, timezone

from telemetry_bench.checkpoint import MAX_CHECKPOINT_AGE, CheckpointStore, RunFingerprint

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _fingerprint(**overrides) -> RunFingerprint:
    values = dict(
        configurations=["clickhouse", "postgresql"],
        dataset_size=1000,
        seed="checkpoint-test",
        load_data=True,
        iterations=5,
        time_limit_seconds=60.0,
    )
    values.update(overrides)
    return RunFingerprint(**values)


class _Clock:
    def __init__(self) -> None:
        self.now = START

    def __call__(self) -> datetime:
        return self.now


def test_saved_checkpoint_resumes_with_results(tmp_path) -> None:
    path = tmp_path / "checkpoints" / "run.json"
    store = CheckpointStore(path, clock=_Clock())
    checkpoint = store.start(_fingerprint(), ["clickhouse", "postgresql"])
    checkpoint.record("clickhouse", {"configuration": "clickhouse", "state": "done"}, now=START)
    store.save(checkpoint)

    resumed = CheckpointStore(path, clock=_Clock()).resume(_fingerprint())

    assert resumed is not None
    assert resumed.session_id == checkpoint.session_id
    assert resumed.completed == ["clickhouse"]
    assert resumed.pending == ["postgresql"]
    assert resumed.partial_results == [{"configuration": "clickhouse", "state": "done"}]


def test_checkpoint_for_other_settings_is_discarded(tmp_path) -> None:
    path = tmp_path / "run.json"
    store = CheckpointStore(path, clock=_Clock())
    store.start(_fingerprint(), ["clickhouse", "postgresql"])

    assert store.resume(_fingerprint(iterations=50)) is None
    assert not path.exists()


def test_stale_checkpoint_is_discarded(tmp_path) -> None:
    clock = _Clock()
    store = CheckpointStore(tmp_path / "run.json", clock=clock)
    store.start(_fingerprint(), ["clickhouse"])

    clock.now = START + MAX_CHECKPOINT_AGE + timedelta(minutes=1)

    assert store.load() is None
    assert not store.path.exists()


def test_corrupted_checkpoint_is_discarded(tmp_path) -> None:
    path = tmp_path / "run.json"
    path.write_text("{not json", encoding="utf-8")

    assert CheckpointStore(path).load() is None
    assert not path.exists()


def test_clear_without_file_is_noop(tmp_path) -> None:
    store = CheckpointStore(tmp_path / "missing.json")
    store.clear()
    assert store.load() is None
