"""
Database adapter contract for the telemetry benchmark.

Each backend implements the DatabaseAdapter protocol. The insertion engine
only needs `connect`, `insert_batch` and `disconnect`; the performance tester
uses `ensure_database_exists`, `connect` and `query`; orchestration uses the
table lifecycle methods.

Adapters raise ConnectivityError when the connection is unusable and
QueryExecutionError for failures of a single statement, so callers can tell a
fatal error from a recoverable one without knowing the driver.
"""

from __future__ import annotations

import abc
from typing import Any, List, Protocol, Sequence, runtime_checkable

from telemetry_bench.domain.models import DatabaseTarget, SyntheticRecord

TABLE_NAME = "performance_test"


@runtime_checkable
class DatabaseAdapter(Protocol):
    """
    Common interface every storage backend must implement.

    Attributes
    ----------
    target : DatabaseTarget
        Backend family, used to pick the SQL dialect of a query.
    name : str
        Human-friendly configuration name (e.g. "PG (w/ Index)").
    """

    target: DatabaseTarget
    name: str

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def ensure_database_exists(self) -> None: ...

    def create_table(self) -> None: ...

    def create_table_with_index(self) -> None: ...

    def drop_table(self) -> None: ...

    def query(self, sql: str) -> List[Any]: ...

    def insert_batch(self, records: Sequence[SyntheticRecord]) -> None: ...


class AbstractDatabaseAdapter(abc.ABC):
    """
    ABC helper for class-based adapters.

    Subclasses set `target` and `name` and implement the abstract methods.
    `connect` must be idempotent and `disconnect` safe to call when not
    connected.
    """

    target: DatabaseTarget
    name: str

    @abc.abstractmethod
    def connect(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def disconnect(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def ensure_database_exists(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def create_table(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def create_table_with_index(self) -> None:
        """Backends without secondary indexes fall back to the plain table."""
        self.create_table()

    @abc.abstractmethod
    def drop_table(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def query(self, sql: str) -> List[Any]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def insert_batch(
        self, records: Sequence[SyntheticRecord]
    ) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


__all__ = [
    "TABLE_NAME",
    "AbstractDatabaseAdapter",
    "DatabaseAdapter",
]
