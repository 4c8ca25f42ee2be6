"""
Orchestrator for running benchmark configurations end to end.

For each selected configuration, sequentially:
1. ensure the database exists and connect,
2. drop and recreate the benchmark table (with secondary indexes when the
   configuration asks for them),
3. bulk-load the seeded dataset through the ParallelInserter, profiled,
4. run the query suite through the PerformanceTester.

Usage (example from CLI):
    from telemetry_bench.orchestrator import RunConfig, run_benchmark

    results = run_benchmark(RunConfig(configurations=["postgresql"], dataset_size=100_000))
    print(results)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Sequence

from telemetry_bench.checkpoint import CheckpointStore, RunCheckpoint, RunFingerprint
from telemetry_bench.config import ConnectionConfig, Settings, get_settings
from telemetry_bench.domain.models import DatabaseTarget
from telemetry_bench.errors import BenchmarkError
from telemetry_bench.infrastructure.adapters import DatabaseAdapter, create_adapter
from telemetry_bench.insertion.inserter import insert_generated
from telemetry_bench.testing.performance_tester import PerformanceTester
from telemetry_bench.utils.cancellation import CancellationToken
from telemetry_bench.utils.logging import get_logger
from telemetry_bench.utils.profiler import ProfileStats, profile_block
from telemetry_bench.utils.progress import ProgressCallback

log = get_logger(__name__)

FailurePolicy = Literal["tolerant", "strict"]


@dataclass(frozen=True)
class BenchmarkTarget:
    """One benchmark configuration: a backend instance plus its table layout."""

    key: str
    display_name: str
    database_target: DatabaseTarget
    connection: ConnectionConfig
    with_index: bool = False

    def build_adapter(self) -> DatabaseAdapter:
        return create_adapter(
            self.database_target,
            self.connection,
            with_index=self.with_index,
            name=self.display_name,
        )


@dataclass(frozen=True)
class RunConfig:
    """
    Options for one orchestrated run. Unset values fall back to settings.

    `load_data=False` runs queries against data already loaded by a previous
    run. `failure_policy="tolerant"` records a failed configuration and moves
    on; `"strict"` re-raises the first failure. With `checkpoint_path` set,
    finished configurations are saved there and a rerun with the same
    settings skips them.
    """

    configurations: Optional[Sequence[str]] = None
    dataset_size: Optional[int] = None
    seed: Optional[str] = None
    batch_size: Optional[int] = None
    workers: Optional[int] = None
    iterations: Optional[int] = None
    warmup_rounds: Optional[int] = None
    time_limit_seconds: Optional[float] = None
    iteration_timeout_seconds: Optional[float] = None
    load_data: bool = True
    failure_policy: FailurePolicy = "tolerant"
    progress_callback: Optional[ProgressCallback] = None
    cancel_token: Optional[CancellationToken] = None
    checkpoint_path: Optional[Path | str] = None


def _benchmark_targets(settings: Settings) -> Dict[str, BenchmarkTarget]:
    """Registry of available configurations."""
    return {
        "clickhouse": BenchmarkTarget(
            "clickhouse", "ClickHouse", DatabaseTarget.CLICKHOUSE, settings.clickhouse_config()
        ),
        "postgresql": BenchmarkTarget(
            "postgresql", "PostgreSQL", DatabaseTarget.POSTGRESQL, settings.postgres_config()
        ),
        "postgresql-indexed": BenchmarkTarget(
            "postgresql-indexed",
            "PG (w/ Index)",
            DatabaseTarget.POSTGRESQL,
            settings.postgres_config(indexed=True),
            with_index=True,
        ),
    }


def available_configurations() -> List[str]:
    """List available configuration keys."""
    return sorted(_benchmark_targets(get_settings()).keys())


def _resolve_targets(
    names: Optional[Sequence[str]], settings: Settings
) -> List[BenchmarkTarget]:
    registry = _benchmark_targets(settings)
    selected = list(names) if names else ["all"]
    if selected == ["all"]:
        return list(registry.values())
    unknown = [name for name in selected if name not in registry]
    if unknown:
        raise ValueError(
            f"Unknown configuration(s) {', '.join(unknown)}. Available: {', '.join(registry)}"
        )
    return [registry[name] for name in selected]


def _dataset_size(config: RunConfig, settings: Settings) -> int:
    return config.dataset_size if config.dataset_size is not None else settings.dataset_size


def _recreate_table(target: BenchmarkTarget, adapter: DatabaseAdapter) -> None:
    log.info(f"[TABLE] Recreating table for {target.display_name}")
    adapter.drop_table()
    if target.with_index:
        adapter.create_table_with_index()
    else:
        adapter.create_table()


def _load_dataset(target: BenchmarkTarget, config: RunConfig, count: int) -> Dict[str, Any]:
    def adapter_factory(
        database_target: DatabaseTarget, connection: Optional[ConnectionConfig]
    ) -> DatabaseAdapter:
        return create_adapter(database_target, connection or target.connection)

    trace = get_settings().profile_tracemalloc
    with profile_block(f"load-{target.key}", enable_tracemalloc=trace) as stats:
        report = insert_generated(
            count,
            target.database_target,
            target.connection,
            seed=config.seed,
            batch_size=config.batch_size,
            worker_count=config.workers,
            progress_callback=config.progress_callback,
            cancel_token=config.cancel_token,
            adapter_factory=adapter_factory,
        )
    load = report.to_dict()
    load["profile"] = _profile_dict(stats)
    return load


def _profile_dict(stats: ProfileStats) -> Dict[str, Any]:
    return {
        "label": stats.label,
        "duration_seconds": round(stats.duration_seconds, 2),
        "peak_rss_bytes": stats.peak_rss_bytes,
        "peak_traced_bytes": stats.peak_traced_bytes,
        "cpu_percent": round(stats.cpu_percent, 1) if stats.cpu_percent else None,
    }


def load_configuration(name: str, config: Optional[RunConfig] = None) -> Dict[str, Any]:
    """
    Recreate the table of one configuration and bulk-load the seeded dataset.

    No queries are run; a later `run_benchmark(RunConfig(load_data=False))`
    measures against the loaded rows.

    Raises
    ------
    ValueError
        If `name` is not a single known configuration.
    BenchmarkError
        Propagated from the load (connectivity, batch failure, timeout).
    """
    config = config or RunConfig()
    settings = get_settings()
    if name == "all":
        raise ValueError("load_configuration takes a single configuration, not 'all'")
    (target,) = _resolve_targets([name], settings)
    count = _dataset_size(config, settings)

    adapter = target.build_adapter()
    adapter.ensure_database_exists()
    adapter.connect()
    try:
        _recreate_table(target, adapter)
    finally:
        adapter.disconnect()

    result = _load_dataset(target, config, count)
    result["configuration"] = target.key
    log.info(
        f"[LOAD COMPLETE] {target.display_name}: {result['records_processed']} records",
        extra={"configuration": target.key, "cancelled": result["cancelled"]},
    )
    return result


def _run_target(target: BenchmarkTarget, config: RunConfig, settings: Settings) -> Dict[str, Any]:
    count = _dataset_size(config, settings)
    load: Dict[str, Any] = {}

    def setup(adapter: DatabaseAdapter) -> None:
        if not config.load_data:
            return
        _recreate_table(target, adapter)
        load.update(_load_dataset(target, config, count))

    tester = PerformanceTester(
        target.build_adapter(),
        warmup_rounds=(
            config.warmup_rounds if config.warmup_rounds is not None else settings.warmup_rounds
        ),
        iterations=config.iterations or settings.query_iterations,
        time_limit_seconds=config.time_limit_seconds or settings.query_time_limit_seconds,
        iteration_timeout_seconds=(
            config.iteration_timeout_seconds or settings.query_iteration_timeout_seconds
        ),
        setup=setup,
        cancel_token=config.cancel_token,
        logger=log,
    )
    result = tester.run(target.display_name).to_dict()
    result["configuration"] = target.key
    result["dataset_size"] = count
    result["load"] = load or None
    return result


def _failure_entry(target: BenchmarkTarget, exc: Exception) -> Dict[str, Any]:
    progress = exc.progress if isinstance(exc, BenchmarkError) else {}
    return {
        "configuration": target.key,
        "label": target.display_name,
        "state": "failed",
        "error": str(exc),
        "extra": {
            "failed": True,
            "error_type": type(exc).__name__,
            "failure_policy": "tolerant",
            "progress": progress,
        },
    }


def _fingerprint(
    targets: List[BenchmarkTarget], config: RunConfig, settings: Settings
) -> RunFingerprint:
    return RunFingerprint(
        configurations=[target.key for target in targets],
        dataset_size=_dataset_size(config, settings),
        seed=config.seed or settings.benchmark_seed,
        load_data=config.load_data,
        iterations=config.iterations or settings.query_iterations,
        time_limit_seconds=config.time_limit_seconds or settings.query_time_limit_seconds,
    )


def _interrupted(result: Dict[str, Any]) -> bool:
    load = result.get("load") or {}
    return bool(result.get("cancelled") or load.get("cancelled"))


def run_benchmark(config: Optional[RunConfig] = None) -> List[Dict[str, Any]]:
    """
    Run the selected configurations sequentially.

    Parameters
    ----------
    config : RunConfig | None
        Run options; defaults to every configuration with settings values.

    Returns
    -------
    List[dict]
        One entry per configuration: the TestResult payload plus load metrics,
        or a failure entry in tolerant mode. Entries restored from a checkpoint
        come first.
    """
    config = config or RunConfig()
    if config.failure_policy not in ("tolerant", "strict"):
        raise ValueError(f"Unknown failure_policy '{config.failure_policy}'")
    settings = get_settings()
    targets = _resolve_targets(config.configurations, settings)

    store: Optional[CheckpointStore] = None
    checkpoint: Optional[RunCheckpoint] = None
    if config.checkpoint_path is not None:
        store = CheckpointStore(config.checkpoint_path, logger=log)
        fingerprint = _fingerprint(targets, config, settings)
        checkpoint = store.resume(fingerprint) or store.start(
            fingerprint, [target.key for target in targets]
        )

    results: List[Dict[str, Any]] = list(checkpoint.partial_results) if checkpoint else []
    completed = set(checkpoint.completed) if checkpoint else set()
    for index, target in enumerate(targets, start=1):
        if target.key in completed:
            log.info(
                f"[CONFIGURATION {index}/{len(targets)}] {target.display_name} (from checkpoint)"
            )
            continue
        if config.cancel_token is not None and config.cancel_token.cancelled:
            log.warning("[ORCHESTRATOR] Cancelled; skipping remaining configurations")
            break
        log.info(f"{'=' * 60}")
        log.info(
            f"[CONFIGURATION {index}/{len(targets)}] {target.display_name}",
            extra={"configuration": target.key, "with_index": target.with_index},
        )
        log.info(f"{'=' * 60}")
        try:
            result = _run_target(target, config, settings)
        except Exception as exc:  # noqa: BLE001 - tolerant mode records failures
            if config.failure_policy == "strict":
                raise
            log.exception(
                f"[CONFIGURATION FAILED] {target.display_name}",
                extra={"configuration": target.key},
            )
            results.append(_failure_entry(target, exc))
            continue
        results.append(result)
        if store is not None and checkpoint is not None and not _interrupted(result):
            checkpoint.record(target.key, result)
            store.save(checkpoint)
        log.info(
            f"[CONFIGURATION COMPLETE] {target.display_name}",
            extra={
                "configuration": target.key,
                "state": result["state"],
                "completed_iterations": result["completed_iterations"],
            },
        )

    if store is not None and checkpoint is not None:
        if checkpoint.pending:
            log.warning(
                f"[CHECKPOINT] {len(checkpoint.pending)} configuration(s) pending; "
                f"rerun with the same settings to resume from {store.path}",
                extra={"pending": checkpoint.pending},
            )
        else:
            store.clear()

    log.info(
        f"[ORCHESTRATOR COMPLETE] {len(results)} configuration(s) executed",
        extra={"configurations": [target.key for target in targets]},
    )
    return results


__all__ = [
    "BenchmarkTarget",
    "RunConfig",
    "available_configurations",
    "load_configuration",
    "run_benchmark",
]
