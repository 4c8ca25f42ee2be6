"""
Infrastructure package for the telemetry benchmark.

Centralizes database connectivity: connection factories and the per-backend
adapters. Keep this layer focused on I/O, decoupled from scheduling and
measurement logic.
"""

from telemetry_bench.infrastructure.adapters import DatabaseAdapter, create_adapter
from telemetry_bench.infrastructure.db_factory import build_dsn, get_sync_connection

__all__ = [
    "DatabaseAdapter",
    "build_dsn",
    "create_adapter",
    "get_sync_connection",
]
