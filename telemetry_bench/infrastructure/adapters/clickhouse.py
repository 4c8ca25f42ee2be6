"""
ClickHouse adapter (columnar store) built on clickhouse-connect.

Optional record fields are stored as zero/empty sentinels because the table
uses non-nullable columns with defaults.
"""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Any, List, Optional, Sequence

import clickhouse_connect
from clickhouse_connect.driver.client import Client
from clickhouse_connect.driver.exceptions import ClickHouseError, OperationalError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from telemetry_bench.config import ConnectionConfig
from telemetry_bench.domain.models import DatabaseTarget, SyntheticRecord
from telemetry_bench.errors import BenchmarkError, ConnectivityError, QueryExecutionError
from telemetry_bench.infrastructure.adapters.abstract import TABLE_NAME, AbstractDatabaseAdapter
from telemetry_bench.utils.logging import get_logger

_CREATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    zorder_coordinate UInt64,
    approach Bool,
    autopilot Bool,
    althold Bool,
    lnav Bool,
    tcas Bool,
    hex String,
    transponder_type LowCardinality(String),
    flight String,
    registration String,
    aircraft_type LowCardinality(String) DEFAULT '',
    db_flags UInt32,
    lat Float64,
    lon Float64,
    alt_baro Int32,
    alt_baro_is_ground Bool,
    alt_geom Int32,
    gs UInt16,
    track UInt16,
    baro_rate Int16,
    geom_rate Int16 DEFAULT 0,
    squawk String,
    emergency LowCardinality(String),
    category LowCardinality(String),
    nav_qnh UInt16 DEFAULT 0,
    nav_altitude_mcp UInt16 DEFAULT 0,
    nav_heading UInt16 DEFAULT 0,
    nav_modes Array(LowCardinality(String)),
    nic UInt8,
    rc UInt16,
    seen_pos Float32,
    version UInt8,
    nic_baro UInt8,
    nac_p UInt8,
    nac_v UInt8,
    sil UInt8,
    sil_type LowCardinality(String),
    gva UInt8,
    sda UInt8,
    alert UInt8,
    spi UInt8,
    mlat Array(LowCardinality(String)),
    tisb Array(LowCardinality(String)),
    messages UInt32,
    seen Float32,
    rssi Float32,
    timestamp DateTime
) ENGINE = MergeTree()
ORDER BY (alt_baro_is_ground, hex, timestamp)
"""

_TIMESTAMP_POSITION = SyntheticRecord.column_names().index("timestamp")


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(OperationalError),
    reraise=True,
)
def _get_client(config: ConnectionConfig, database: Optional[str] = None) -> Client:
    return clickhouse_connect.get_client(
        host=config.host,
        port=config.port,
        username=config.username,
        password=config.password,
        database=database if database is not None else config.database,
    )


class ClickHouseAdapter(AbstractDatabaseAdapter):
    target = DatabaseTarget.CLICKHOUSE

    def __init__(
        self,
        config: ConnectionConfig,
        name: str = "ClickHouse",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.name = name
        self._log = logger or get_logger(__name__)
        self._client: Optional[Client] = None

    def connect(self) -> None:
        if self._client is not None:
            return
        try:
            self._client = _get_client(self.config)
        except ClickHouseError as exc:
            raise ConnectivityError(f"{self.name}: connection failed: {exc}") from exc
        self._log.debug(f"{self.name} connected", extra={"host": self.config.host})

    def disconnect(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        client.close()

    def ensure_database_exists(self) -> None:
        try:
            setup_client = _get_client(self.config, database="")
        except ClickHouseError as exc:
            raise ConnectivityError(f"{self.name}: cannot reach server: {exc}") from exc
        try:
            setup_client.command(f"CREATE DATABASE IF NOT EXISTS {self.config.database}")
        except ClickHouseError as exc:
            raise self._classify(exc) from exc
        finally:
            setup_client.close()

    def create_table(self) -> None:
        self._command(_CREATE_TABLE)

    def drop_table(self) -> None:
        self._command(f"DROP TABLE IF EXISTS {TABLE_NAME}")

    def query(self, sql_text: str) -> List[Any]:
        client = self._require_client()
        try:
            return list(client.query(sql_text).result_rows)
        except ClickHouseError as exc:
            raise self._classify(exc) from exc

    def insert_batch(self, records: Sequence[SyntheticRecord]) -> None:
        client = self._require_client()
        rows = [self._row(record) for record in records]
        try:
            client.insert(TABLE_NAME, rows, column_names=SyntheticRecord.column_names())
        except ClickHouseError as exc:
            raise self._classify(exc) from exc

    @staticmethod
    def _row(record: SyntheticRecord) -> List[Any]:
        row = record.as_row(null_sentinels=True)
        # Generated timestamps are naive UTC; the driver reads naive values as local time.
        row[_TIMESTAMP_POSITION] = row[_TIMESTAMP_POSITION].replace(tzinfo=timezone.utc)
        return row

    def _command(self, statement: str) -> None:
        client = self._require_client()
        try:
            client.command(statement)
        except ClickHouseError as exc:
            raise self._classify(exc) from exc

    def _require_client(self) -> Client:
        if self._client is None:
            raise ConnectivityError(f"{self.name}: not connected")
        return self._client

    def _classify(self, exc: Exception) -> BenchmarkError:
        if isinstance(exc, OperationalError):
            return ConnectivityError(f"{self.name}: connection lost: {exc}")
        return QueryExecutionError(f"{self.name}: {exc}")


__all__ = ["ClickHouseAdapter"]
