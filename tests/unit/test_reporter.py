from __future__ import annotations

from rich.console import Console

from telemetry_bench.reporter import load_table, print_results
from telemetry_bench.testing.statistics import compute_statistics


def _console() -> Console:
    return Console(record=True, width=200, color_system=None)


def _result(label: str, throughput: float, *, timed_out: bool = False) -> dict:
    stats = compute_statistics([10.0, 12.0, 14.0])
    assert stats is not None
    return {
        "configuration": label.lower(),
        "label": label,
        "state": "timed_out" if timed_out else "done",
        "timed_out": timed_out,
        "cancelled": False,
        "completed_iterations": 3,
        "queries": [
            {"key": "q1", "name": "Q1 Show tables", "samples": 3, "errors": 0,
             "statistics": stats.to_dict()},
            {"key": "q2", "name": "Q2 Explore schema", "samples": 0, "errors": 3,
             "statistics": None},
        ],
        "load": {
            "records_processed": 1000,
            "peak_workers": 2,
            "duration_seconds": 1.0,
            "throughput_records_per_sec": throughput,
            "profile": {"peak_rss_bytes": 1024 * 1024, "cpu_percent": None},
        },
    }


def test_print_results_renders_latency_and_load() -> None:
    console = _console()
    print_results([_result("PostgreSQL", 500.0), _result("ClickHouse", 900.0)], console)
    text = console.export_text()

    assert "Query Latency" in text
    assert "Bulk Load" in text
    assert "12.00" in text
    assert "N/A" in text
    assert text.index("ClickHouse") < text.index("PostgreSQL")


def test_failed_and_timed_out_configurations_are_marked() -> None:
    console = _console()
    failed = {
        "configuration": "clickhouse",
        "label": "ClickHouse",
        "state": "failed",
        "error": "connection refused",
    }
    print_results([failed, _result("PostgreSQL", 1.0, timed_out=True)], console)
    text = console.export_text()

    assert "failed: connection refused" in text
    assert "timed out after 3 iterations" in text


def test_empty_results() -> None:
    console = _console()
    print_results([], console)
    assert "No results to display." in console.export_text()


def test_load_table_absent_for_query_only_runs() -> None:
    result = _result("PostgreSQL", 1.0)
    result["load"] = None
    assert load_table([result]) is None
