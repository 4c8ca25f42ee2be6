"""
Parallel insertion engine: worker actors, the bounded worker pool and the
chunking/scheduling inserter on top of them.
"""

from telemetry_bench.insertion.inserter import (
    InsertionReport,
    ParallelInserter,
    chunk_window,
    insert_generated,
)
from telemetry_bench.insertion.pool import WorkerPool
from telemetry_bench.insertion.worker import Batch, InsertJob, InsertResult, WorkerHandle

__all__ = [
    "Batch",
    "InsertJob",
    "InsertResult",
    "InsertionReport",
    "ParallelInserter",
    "WorkerHandle",
    "WorkerPool",
    "chunk_window",
    "insert_generated",
]
