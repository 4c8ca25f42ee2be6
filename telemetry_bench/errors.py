"""
Error taxonomy for the telemetry benchmark.

Every error raised by the generator, the parallel inserter and the performance
tester derives from BenchmarkError. Errors that abort an operation carry a
`progress` dictionary describing what was achieved before the failure
(records inserted, iterations completed, ...), so callers can report partial
results instead of an opaque failure.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""

    def __init__(self, message: str, *, progress: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.progress: Dict[str, Any] = dict(progress or {})


class GenerationError(BenchmarkError, ValueError):
    """Invalid seed or record count passed to the data generator."""


class WorkerInitError(BenchmarkError):
    """A worker failed to start, connect, or complete its handshake in time."""


class BatchInsertError(BenchmarkError):
    """The database adapter reported a failure while inserting a batch."""

    def __init__(
        self,
        message: str,
        *,
        job_id: Optional[int] = None,
        progress: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, progress=progress)
        self.job_id = job_id


class QueryExecutionError(BenchmarkError):
    """A single query execution failed; recoverable during measurement."""


class ConnectivityError(BenchmarkError):
    """The database connection was lost or could not be established; fatal."""


class BenchmarkTimeoutError(BenchmarkError, TimeoutError):
    """A batch or a measurement round exceeded its deadline."""


__all__ = [
    "BenchmarkError",
    "GenerationError",
    "WorkerInitError",
    "BatchInsertError",
    "QueryExecutionError",
    "ConnectivityError",
    "BenchmarkTimeoutError",
]
