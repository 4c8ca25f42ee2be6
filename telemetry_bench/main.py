from __future__ import annotations

import json
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from telemetry_bench.config import get_settings
from telemetry_bench.data.generator import SeededDataGenerator
from telemetry_bench.orchestrator import (
    RunConfig,
    available_configurations,
    load_configuration,
    run_benchmark,
)
from telemetry_bench.reporter import print_results
from telemetry_bench.utils.cancellation import CancellationToken, install_signal_handlers
from telemetry_bench.utils.logging import configure_logging
from telemetry_bench.utils.progress import ProgressUpdate

app = typer.Typer(help="Telemetry benchmark CLI: relational vs. columnar query latency.")
console = Console(stderr=True)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"PG={settings.postgres_username}@{settings.postgres_host}:{settings.postgres_port}"
        f"/{settings.postgres_database} | "
        f"PG indexed={settings.postgres_indexed_host}:{settings.postgres_indexed_port} | "
        f"ClickHouse={settings.clickhouse_host}:{settings.clickhouse_port}"
        f"/{settings.clickhouse_database}"
    )
    typer.echo(
        f"rows={settings.dataset_size} batch={settings.batch_size} "
        f"workers={settings.parallel_workers} iterations={settings.query_iterations} "
        f"seed={settings.benchmark_seed}"
    )
    typer.echo("Configurations: " + ", ".join(available_configurations()))


@app.command()
def preview(
    count: int = typer.Option(3, "--count", "-n", min=1, help="Number of records to print."),
    seed: Optional[str] = typer.Option(None, "--seed", help="Generator seed."),
) -> None:
    """
    Print the first generated records for a seed, without touching a database.
    """
    stream = SeededDataGenerator(seed or get_settings().benchmark_seed).generate(count)
    for record in stream:
        typer.echo(record.model_dump_json())


class _LoadProgress:
    """Bridges ProgressUpdate callbacks to one rich progress task per load."""

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._task: Optional[TaskID] = None

    def __call__(self, update: ProgressUpdate) -> None:
        if self._task is None:
            self._task = self._progress.add_task("Inserting", total=update.total)
        self._progress.update(
            self._task,
            completed=update.processed,
            description=f"Inserting ({update.rate:,.0f} rec/s)",
        )
        if update.final:
            self._task = None


def _progress_bar() -> Progress:
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=True,
    )


@app.command()
def load(
    configuration: str = typer.Option(
        ..., "--config", "-c", help="Configuration to load (clickhouse, postgresql, ...)."
    ),
    rows: Optional[int] = typer.Option(None, "--rows", "-r", min=0),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, max=16),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", min=1),
    seed: Optional[str] = typer.Option(None, "--seed"),
) -> None:
    """
    Recreate the table of one configuration and bulk-load the seeded dataset.

    Pair with `run --query-only` to measure queries against the loaded data.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    token = CancellationToken()
    with install_signal_handlers(token), _progress_bar() as progress:
        result = load_configuration(
            configuration,
            RunConfig(
                dataset_size=rows,
                seed=seed,
                batch_size=batch_size,
                workers=workers,
                progress_callback=_LoadProgress(progress),
                cancel_token=token,
            ),
        )
    typer.echo(json.dumps(result, indent=2, default=str))
    if token.cancelled:
        raise typer.Exit(code=130)


@app.command()
def run(
    configuration: List[str] = typer.Option(
        ["all"],
        "--config",
        "-c",
        help="Configuration to run (clickhouse, postgresql, postgresql-indexed, all, list).",
    ),
    rows: Optional[int] = typer.Option(
        None, "--rows", "-r", help="Override dataset size (default from settings)."
    ),
    iterations: Optional[int] = typer.Option(None, "--iterations", "-i", min=1),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, max=16),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", min=1),
    seed: Optional[str] = typer.Option(None, "--seed"),
    time_limit: Optional[float] = typer.Option(
        None, "--time-limit", help="Measurement time limit in seconds."
    ),
    query_only: bool = typer.Option(
        False, "--query-only", help="Skip table creation and loading; query existing data."
    ),
    strict: bool = typer.Option(False, "--strict", help="Stop at the first failed configuration."),
    checkpoint: bool = typer.Option(
        True,
        "--checkpoint/--no-checkpoint",
        help="Save finished configurations and resume an interrupted run with the same settings.",
    ),
) -> None:
    """
    Load and query the selected configurations, then print results as JSON.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    if configuration == ["list"]:
        typer.echo("Available configurations: " + ", ".join(available_configurations()))
        return

    token = CancellationToken()
    with install_signal_handlers(token), _progress_bar() as progress:
        results = run_benchmark(
            RunConfig(
                configurations=configuration,
                dataset_size=rows,
                seed=seed,
                batch_size=batch_size,
                workers=workers,
                iterations=iterations,
                time_limit_seconds=time_limit,
                load_data=not query_only,
                failure_policy="strict" if strict else "tolerant",
                progress_callback=_LoadProgress(progress),
                cancel_token=token,
                checkpoint_path=settings.checkpoint_path if checkpoint else None,
            )
        )
    typer.echo(json.dumps(results, indent=2, default=str))
    print_results(results, console)
    if token.cancelled:
        raise typer.Exit(code=130)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
