"""
Telemetry benchmark - relational vs. columnar query latency.

This package generates deterministic synthetic telemetry records, bulk-loads
them into PostgreSQL and ClickHouse through a bounded pool of insert workers,
and measures a fixed query suite with warmup rounds and confidence intervals:

- Seeded, restartable record generation
- Parallel batch insertion with backpressure, fail-fast errors and cancellation
- Query measurement with per-iteration error tolerance and timeouts
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from telemetry_bench.checkpoint import CheckpointStore
from telemetry_bench.config import Settings, get_settings
from telemetry_bench.data.generator import SeededDataGenerator, generate
from telemetry_bench.errors import (
    BatchInsertError,
    BenchmarkError,
    BenchmarkTimeoutError,
    ConnectivityError,
    GenerationError,
    QueryExecutionError,
    WorkerInitError,
)
from telemetry_bench.insertion.inserter import ParallelInserter
from telemetry_bench.orchestrator import RunConfig, available_configurations, run_benchmark
from telemetry_bench.testing.performance_tester import PerformanceTester, TestResult
from telemetry_bench.testing.statistics import compute_statistics
from telemetry_bench.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Core engine
    "SeededDataGenerator",
    "generate",
    "ParallelInserter",
    "PerformanceTester",
    "TestResult",
    "compute_statistics",
    # Orchestration
    "CheckpointStore",
    "RunConfig",
    "available_configurations",
    "run_benchmark",
    # Errors
    "BenchmarkError",
    "GenerationError",
    "WorkerInitError",
    "BatchInsertError",
    "QueryExecutionError",
    "ConnectivityError",
    "BenchmarkTimeoutError",
    # Logging
    "configure_logging",
    "get_logger",
]
