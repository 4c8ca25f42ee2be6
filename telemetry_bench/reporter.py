from __future__ import annotations

from typing import Any, Dict, List, Optional

import psutil
from rich import box
from rich.console import Console
from rich.table import Table


def host_resources() -> str:
    """
    Describe the machine the benchmark ran on, e.g. "8 CPUs │ 15.5GB RAM".
    """
    parts = []
    cpus = psutil.cpu_count(logical=True)
    if cpus:
        parts.append(f"{cpus} CPUs")
    mem_bytes = psutil.virtual_memory().total
    mem_gb = mem_bytes / (1024**3)
    if mem_gb >= 1:
        parts.append(f"{mem_gb:.1f}GB RAM")
    else:
        parts.append(f"{mem_bytes / (1024**2):.0f}MB RAM")
    return " │ ".join(parts)


_BLANK = [""] * 6


def _ms(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:,.2f}"


def latency_table(results: List[Dict[str, Any]]) -> Table:
    """
    One row per (configuration, query) with the latency statistics in ms.

    Failed configurations get a single row carrying their error.
    """
    table = Table(
        title=f"Query Latency\n[dim]Host: {host_resources()}[/dim]",
        box=box.ROUNDED,
        caption="95% CI uses t=2.0 up to 30 samples, 1.96 above",
    )
    table.add_column("Configuration", style="cyan", no_wrap=True)
    table.add_column("Query", no_wrap=True)
    table.add_column("Samples", justify="right", style="magenta")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Mean (ms)", justify="right", style="bold green")
    table.add_column("Median (ms)", justify="right", style="green")
    table.add_column("StdDev", justify="right", style="yellow")
    table.add_column("95% CI (ms)", justify="right")

    for res in results:
        label = res.get("label") or res.get("configuration", "Unknown")
        if res.get("state") == "failed" and not res.get("queries"):
            table.add_row(label, f"[red]failed: {res.get('error', '')}[/red]", *_BLANK)
            continue
        for query in res.get("queries", []):
            stats = query.get("statistics")
            if stats is None:
                counts = (str(query["samples"]), str(query["errors"]))
                table.add_row(label, query["name"], *counts, *(["N/A"] * 4))
                continue
            table.add_row(
                label,
                query["name"],
                str(query["samples"]),
                str(query["errors"]),
                _ms(stats["mean"]),
                _ms(stats["median"]),
                _ms(stats["stddev"]),
                f"{_ms(stats['ci_lower'])} – {_ms(stats['ci_upper'])}",
            )
        if res.get("timed_out") or res.get("cancelled"):
            note = "timed out" if res.get("timed_out") else "cancelled"
            table.add_row(
                label,
                f"[yellow]{note} after {res.get('completed_iterations', 0)} iterations[/yellow]",
                *_BLANK,
            )
    return table


def load_table(results: List[Dict[str, Any]]) -> Optional[Table]:
    """Bulk-load metrics per configuration, sorted by throughput (descending)."""
    loads = [(res, res["load"]) for res in results if res.get("load")]
    if not loads:
        return None

    table = Table(title="Bulk Load", box=box.ROUNDED, caption="Sorted by Throughput (descending)")
    table.add_column("Configuration", style="cyan", no_wrap=True)
    table.add_column("Records", justify="right", style="magenta")
    table.add_column("Workers", justify="right", style="blue")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Throughput (rec/s)", justify="right", style="bold green")
    table.add_column("Peak Memory (MB)", justify="right", style="yellow")
    table.add_column("CPU %", justify="right", style="red")

    loads.sort(key=lambda item: item[1].get("throughput_records_per_sec", 0.0), reverse=True)
    for res, load in loads:
        profile = load.get("profile") or {}
        mem_bytes = profile.get("peak_rss_bytes") or 0
        cpu = profile.get("cpu_percent")
        table.add_row(
            res.get("label") or res.get("configuration", "Unknown"),
            f"{load.get('records_processed', 0):,}",
            str(load.get("peak_workers", 0)),
            f"{load.get('duration_seconds', 0.0):.1f}",
            f"{load.get('throughput_records_per_sec', 0.0):,.2f}",
            f"{mem_bytes / (1024 * 1024):.2f}",
            "N/A" if cpu is None else f"{cpu:.1f}",
        )
    return table


def print_results(results: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render orchestrator results as rich tables.
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    loads = load_table(results)
    if loads is not None:
        console.print(loads)
    console.print(latency_table(results))


__all__ = ["host_resources", "latency_table", "load_table", "print_results"]
