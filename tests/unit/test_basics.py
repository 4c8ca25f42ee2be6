from time import sleep

import pytest
from pydantic import ValidationError

from telemetry_bench import config
from telemetry_bench.orchestrator import available_configurations
from telemetry_bench.utils import profiler

EXPECTED_PG_PORT = 5432
EXPECTED_INDEXED_PORT = 5433


def test_get_settings_defaults(monkeypatch):
    for name in ("POSTGRES_HOST", "POSTGRES_PORT", "PARALLEL_WORKERS", "BATCH_SIZE"):
        monkeypatch.delenv(name, raising=False)
    settings = config.Settings(_env_file=None)
    assert settings.postgres_host == "localhost"
    assert settings.postgres_port == EXPECTED_PG_PORT
    assert settings.postgres_indexed_port == EXPECTED_INDEXED_PORT
    assert settings.benchmark_seed == "default-benchmark-seed"
    assert settings.batch_size > 0
    assert 1 <= settings.parallel_workers <= 16
    assert settings.warmup_rounds == 3


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PARALLEL_WORKERS", "8")
    monkeypatch.setenv("CLICKHOUSE_HOST", "ch.internal")
    settings = config.Settings(_env_file=None)
    assert settings.parallel_workers == 8
    assert settings.clickhouse_config().host == "ch.internal"


def test_settings_reject_out_of_range_workers(monkeypatch):
    monkeypatch.setenv("PARALLEL_WORKERS", "64")
    with pytest.raises(ValidationError):
        config.Settings(_env_file=None)


def test_postgres_config_switches_instance_for_indexed():
    settings = config.Settings(_env_file=None, postgres_indexed_host="pg-indexed")
    plain = settings.postgres_config()
    indexed = settings.postgres_config(indexed=True)
    assert indexed.host == "pg-indexed"
    assert indexed.port == settings.postgres_indexed_port
    assert plain.database == indexed.database


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    assert stats.peak_rss_bytes is None or stats.peak_rss_bytes > 0
    if stats.cpu_percent is not None:
        assert isinstance(stats.cpu_percent, float)


def test_profile_block_traces_python_allocations():
    with profiler.profile_block("alloc", enable_tracemalloc=True) as stats:
        payload = [bytearray(1024) for _ in range(256)]
    assert len(payload) == 256
    assert stats.peak_traced_bytes is not None
    assert stats.peak_traced_bytes >= 256 * 1024


def test_profile_block_skips_tracing_by_default():
    with profiler.profile_block("plain") as stats:
        pass
    assert stats.peak_traced_bytes is None


def test_memory_monitor_warns_above_threshold(monkeypatch):
    monitor = profiler.MemoryMonitor(warning_threshold=0.5)
    monkeypatch.setattr(monitor, "usage_ratio", lambda: 0.9)
    assert monitor.check() is False
    assert monitor.warnings == 1

    monkeypatch.setattr(monitor, "usage_ratio", lambda: 0.1)
    assert monitor.check() is True
    assert monitor.warnings == 1


def test_available_configurations_contains_known_entries():
    names = available_configurations()
    assert names == ["clickhouse", "postgresql", "postgresql-indexed"]
