"""
Database connection factory utilities for the telemetry benchmark.

Every insert worker and every performance tester owns exactly one dedicated
connection, so there is no shared pool here: these helpers build DSNs and open
connections with retry logic for transient failures using tenacity.
"""

from __future__ import annotations

import psycopg
from psycopg import Connection, sql
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from telemetry_bench.config import ConnectionConfig


def build_dsn(config: ConnectionConfig, database: str | None = None) -> str:
    """Compose a PostgreSQL DSN from a connection block."""
    return (
        f"postgresql://{config.username}:{config.password}"
        f"@{config.host}:{config.port}/{database or config.database}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: str, autocommit: bool = False) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn, autocommit=autocommit)


def apply_statement_timeout(cur: psycopg.Cursor, timeout_ms: int) -> None:
    """Bound every statement on this session; 0 disables the limit."""
    if timeout_ms <= 0:
        return
    cur.execute(
        sql.SQL("SET statement_timeout = {}").format(sql.Literal(int(timeout_ms)))
    )


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]
