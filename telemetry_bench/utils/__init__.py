"""
Utilities package for the telemetry benchmark.

Exports shared helpers for logging, profiling, progress reporting and
cancellation. Keep this package lightweight and free of domain-specific logic.
"""

from telemetry_bench.utils.cancellation import CancellationToken, install_signal_handlers
from telemetry_bench.utils.logging import configure_logging, get_logger
from telemetry_bench.utils.profiler import MemoryMonitor, ProfileStats, profile_block
from telemetry_bench.utils.progress import ProgressReporter, ProgressUpdate

__all__ = [
    "CancellationToken",
    "install_signal_handlers",
    "configure_logging",
    "get_logger",
    "MemoryMonitor",
    "ProfileStats",
    "profile_block",
    "ProgressReporter",
    "ProgressUpdate",
]
