"""
Database adapters for the telemetry benchmark.

`create_adapter` is the only construction path used by the insert workers and
the orchestrator, so both backends are interchangeable behind the
DatabaseAdapter protocol.
"""

from __future__ import annotations

import logging
from typing import Optional

from telemetry_bench.config import ConnectionConfig
from telemetry_bench.domain.models import DatabaseTarget
from telemetry_bench.infrastructure.adapters.abstract import (
    TABLE_NAME,
    AbstractDatabaseAdapter,
    DatabaseAdapter,
)


def create_adapter(
    target: DatabaseTarget | str,
    config: ConnectionConfig,
    with_index: bool = False,
    name: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> DatabaseAdapter:
    """
    Build an unconnected adapter for `target`.

    Driver modules are imported on first use of their backend.
    """
    target = DatabaseTarget(target)
    if target is DatabaseTarget.POSTGRESQL:
        from telemetry_bench.infrastructure.adapters.postgresql import PostgresAdapter

        return PostgresAdapter(config, with_index=with_index, name=name, logger=logger)

    from telemetry_bench.infrastructure.adapters.clickhouse import ClickHouseAdapter

    return ClickHouseAdapter(config, name=name or "ClickHouse", logger=logger)


__all__ = [
    "TABLE_NAME",
    "AbstractDatabaseAdapter",
    "DatabaseAdapter",
    "create_adapter",
]
