"""
Profiling and memory utilities for the telemetry benchmark.

- `profile_block` measures a block of work (bulk loads): wall-clock time,
  peak RSS via a background psutil sampling thread, peak Python allocations
  via tracemalloc, and a CPU percent snapshot.
- `MemoryMonitor` implements the periodic memory check run by the parallel
  inserter. It only ever warns; it never aborts a run.

Usage:
    from telemetry_bench.utils.profiler import profile_block

    with profile_block("load-postgresql") as stats:
        inserter.submit_stream(...)

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
import tracemalloc
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil

from telemetry_bench.utils.logging import get_logger

# Rough in-memory footprint of one generated record, including object overhead.
BYTES_PER_RECORD = 2048


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    peak_traced_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)


@contextlib.contextmanager
def profile_block(
    label: str, sample_interval_ms: int = 50, enable_tracemalloc: bool = False
) -> Generator[ProfileStats, None, None]:
    """
    Context manager to profile a block of code.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_interval_ms : int
        Interval in milliseconds for RSS sampling.
    enable_tracemalloc : bool
        Track Python-level allocations. Off by default: tracing slows down
        record generation noticeably on large loads.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    peak_rss = process.memory_info().rss
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.is_set():
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return
            stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

    tracemalloc_was_running = tracemalloc.is_tracing()
    if enable_tracemalloc and not tracemalloc_was_running:
        tracemalloc.start()

    # CPU percent needs a priming call
    process.cpu_percent(interval=None)

    sampler = threading.Thread(target=_sample_memory, name=f"rss-sampler-{label}", daemon=True)
    sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        stop_sampling.set()
        sampler.join(timeout=1.0)

        stats.peak_rss_bytes = peak_rss or None
        stats.cpu_percent = process.cpu_percent(interval=None)

        if enable_tracemalloc and tracemalloc.is_tracing():
            _, peak_traced = tracemalloc.get_traced_memory()
            stats.peak_traced_bytes = peak_traced
            if not tracemalloc_was_running:
                tracemalloc.stop()


def estimate_chunk_bytes(records: int) -> int:
    """Estimated memory needed to hold `records` generated records."""
    return records * BYTES_PER_RECORD


def format_bytes(value: float) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"


class MemoryMonitor:
    """
    Non-fatal memory watchdog.

    `check()` compares this process's RSS against total system memory and logs
    a warning once the share crosses `warning_threshold`.
    """

    def __init__(
        self,
        warning_threshold: float = 0.85,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.warning_threshold = warning_threshold
        self.warnings = 0
        self._log = logger or get_logger(__name__)
        self._process = psutil.Process()

    def usage_ratio(self) -> float:
        return self._process.memory_info().rss / psutil.virtual_memory().total

    def check(self) -> bool:
        """Return True when usage is below the threshold; warn otherwise."""
        ratio = self.usage_ratio()
        if ratio < self.warning_threshold:
            return True
        self.warnings += 1
        self._log.warning(
            f"[MEMORY] High memory usage: {ratio:.1%} of system memory",
            extra={"memory_ratio": round(ratio, 4), "threshold": self.warning_threshold},
        )
        return False

    def check_before(self, operation: str, additional_bytes: int) -> bool:
        """
        Log the projected usage of an upcoming operation.

        Returns False (after logging a warning) when the projection crosses the
        threshold; the caller decides what to do with that.
        """
        total = psutil.virtual_memory().total
        current = self._process.memory_info().rss
        projected = (current + additional_bytes) / total
        self._log.info(
            f"[MEMORY] Pre-operation check: {operation}",
            extra={
                "current": format_bytes(current),
                "additional": format_bytes(additional_bytes),
                "projected_ratio": round(projected, 4),
            },
        )
        if projected >= self.warning_threshold:
            self._log.warning(
                f"[MEMORY] {operation} projected to use {projected:.1%} of system memory; "
                "consider reducing BATCH_SIZE or PARALLEL_WORKERS"
            )
            return False
        return True


__all__ = [
    "MemoryMonitor",
    "ProfileStats",
    "estimate_chunk_bytes",
    "format_bytes",
    "profile_block",
]
