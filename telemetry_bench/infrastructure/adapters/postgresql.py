"""
PostgreSQL adapter (relational store).

Inserts go through COPY, the fastest bulk path psycopg offers, inside one
transaction per batch. The indexed variant adds secondary indexes matching the
query suite's filters.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import psycopg
from psycopg import sql

from telemetry_bench.config import ConnectionConfig
from telemetry_bench.domain.models import DatabaseTarget, SyntheticRecord
from telemetry_bench.errors import BenchmarkError, ConnectivityError, QueryExecutionError
from telemetry_bench.infrastructure.adapters.abstract import TABLE_NAME, AbstractDatabaseAdapter
from telemetry_bench.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
)
from telemetry_bench.utils.logging import get_logger

_CREATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    zorder_coordinate BIGINT,
    approach BOOLEAN,
    autopilot BOOLEAN,
    althold BOOLEAN,
    lnav BOOLEAN,
    tcas BOOLEAN,
    hex VARCHAR(6),
    transponder_type VARCHAR(50),
    flight VARCHAR(20),
    registration VARCHAR(20),
    aircraft_type VARCHAR(10),
    db_flags INTEGER,
    lat DOUBLE PRECISION,
    lon DOUBLE PRECISION,
    alt_baro INTEGER,
    alt_baro_is_ground BOOLEAN,
    alt_geom INTEGER,
    gs INTEGER,
    track INTEGER,
    baro_rate INTEGER,
    geom_rate INTEGER,
    squawk VARCHAR(4),
    emergency VARCHAR(20),
    category VARCHAR(5),
    nav_qnh INTEGER,
    nav_altitude_mcp INTEGER,
    nav_heading INTEGER,
    nav_modes TEXT[],
    nic SMALLINT,
    rc INTEGER,
    seen_pos DOUBLE PRECISION,
    version SMALLINT,
    nic_baro SMALLINT,
    nac_p SMALLINT,
    nac_v SMALLINT,
    sil SMALLINT,
    sil_type VARCHAR(20),
    gva SMALLINT,
    sda SMALLINT,
    alert SMALLINT,
    spi SMALLINT,
    mlat TEXT[],
    tisb TEXT[],
    messages INTEGER,
    seen DOUBLE PRECISION,
    rssi DOUBLE PRECISION,
    timestamp TIMESTAMP
)
"""

_INDEXES = (
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_timestamp ON {TABLE_NAME} (timestamp)",
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_hex_timestamp ON {TABLE_NAME} (hex, timestamp)",
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_lat_lon ON {TABLE_NAME} (lat, lon)",
)


class PostgresAdapter(AbstractDatabaseAdapter):
    """
    One dedicated psycopg connection in autocommit mode.
    """

    target = DatabaseTarget.POSTGRESQL

    def __init__(
        self,
        config: ConnectionConfig,
        with_index: bool = False,
        name: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.with_index = with_index
        self.name = name or ("PG (w/ Index)" if with_index else "PostgreSQL")
        self._log = logger or get_logger(__name__)
        self._conn: Optional[psycopg.Connection] = None

    @property
    def connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    def connect(self) -> None:
        if self.connected:
            return
        try:
            self._conn = get_sync_connection(build_dsn(self.config), autocommit=True)
            with self._conn.cursor() as cur:
                apply_statement_timeout(cur, self.config.statement_timeout_ms)
        except psycopg.Error as exc:
            self._conn = None
            raise ConnectivityError(f"{self.name}: connection failed: {exc}") from exc
        self._log.debug(f"{self.name} connected", extra={"host": self.config.host})

    def disconnect(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()

    def ensure_database_exists(self) -> None:
        admin_dsn = build_dsn(self.config, database="postgres")
        try:
            with get_sync_connection(admin_dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "SELECT 1 FROM pg_database WHERE datname = %s", (self.config.database,)
                    )
                    if cur.fetchone() is None:
                        cur.execute(
                            sql.SQL("CREATE DATABASE {}").format(
                                sql.Identifier(self.config.database)
                            )
                        )
                        self._log.info(f"Created database: {self.config.database}")
        except psycopg.OperationalError as exc:
            raise ConnectivityError(f"{self.name}: cannot reach server: {exc}") from exc

    def create_table(self) -> None:
        self._execute(_CREATE_TABLE)

    def create_table_with_index(self) -> None:
        self.create_table()
        for statement in _INDEXES:
            self._execute(statement)

    def drop_table(self) -> None:
        self._execute(f"DROP TABLE IF EXISTS {TABLE_NAME}")

    def query(self, sql_text: str) -> List[Any]:
        return self._execute(sql_text, fetch=True)

    def insert_batch(self, records: Sequence[SyntheticRecord]) -> None:
        conn = self._require_connection()
        columns = sql.SQL(", ").join(map(sql.Identifier, SyntheticRecord.column_names()))
        statement = sql.SQL("COPY {} ({}) FROM STDIN").format(sql.Identifier(TABLE_NAME), columns)
        try:
            with conn.transaction():
                with conn.cursor() as cur:
                    with cur.copy(statement) as copy:
                        for record in records:
                            copy.write_row(record.as_row())
        except psycopg.Error as exc:
            raise self._classify(exc) from exc

    def _require_connection(self) -> psycopg.Connection:
        if not self.connected:
            raise ConnectivityError(f"{self.name}: not connected")
        assert self._conn is not None
        return self._conn

    def _execute(self, statement: str, fetch: bool = False) -> List[Any]:
        conn = self._require_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(statement)
                if fetch and cur.description is not None:
                    return cur.fetchall()
                return []
        except psycopg.Error as exc:
            raise self._classify(exc) from exc

    def _classify(self, exc: psycopg.Error) -> BenchmarkError:
        # A statement timeout is an OperationalError too; only a broken
        # connection is fatal.
        conn = self._conn
        if isinstance(exc, psycopg.InterfaceError) or conn is None or conn.closed or conn.broken:
            return ConnectivityError(f"{self.name}: connection lost: {exc}")
        return QueryExecutionError(f"{self.name}: {exc}")


__all__ = ["PostgresAdapter"]
