"""
Query performance measurement: the fixed query suite, the warmup/measure
state machine and the latency statistics.
"""

from telemetry_bench.testing.performance_tester import (
    PerformanceTester,
    QueryIterationSet,
    QueryReport,
    QueryRun,
    TesterState,
    TestResult,
)
from telemetry_bench.testing.queries import QueryDefinition, build_query_suite
from telemetry_bench.testing.statistics import QueryStatistics, compute_statistics

__all__ = [
    "PerformanceTester",
    "QueryDefinition",
    "QueryIterationSet",
    "QueryReport",
    "QueryRun",
    "QueryStatistics",
    "TestResult",
    "TesterState",
    "build_query_suite",
    "compute_statistics",
]
