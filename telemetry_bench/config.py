"""
Configuration settings for the telemetry benchmark.

Uses Pydantic Settings to load environment variables for the relational and
columnar store connections, logging, and benchmark defaults. Range checks are
expressed on the fields so a bad `.env` fails at load time.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConnectionConfig(BaseModel):
    """
    Connection block for one database instance.

    Passed to insert workers as `db_config` so every worker can open its own
    connection independently.
    """

    host: str = "localhost"
    port: int = Field(5432, ge=1, le=65535)
    database: str = "performance_test"
    username: str = "postgres"
    password: str = "postgres"
    statement_timeout_ms: int = Field(0, ge=0)

    model_config = {"frozen": True}


class Settings(BaseSettings):
    # PostgreSQL
    postgres_host: str = Field("localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(5432, alias="POSTGRES_PORT")
    postgres_database: str = Field("performance_test", alias="POSTGRES_DATABASE")
    postgres_username: str = Field("postgres", alias="POSTGRES_USERNAME")
    postgres_password: str = Field("postgres", alias="POSTGRES_PASSWORD")
    postgres_indexed_host: str = Field("localhost", alias="POSTGRES_INDEXED_HOST")
    postgres_indexed_port: int = Field(5433, alias="POSTGRES_INDEXED_PORT")
    db_statement_timeout_ms: int = Field(0, ge=0, alias="DB_STATEMENT_TIMEOUT_MS")

    # ClickHouse
    clickhouse_host: str = Field("localhost", alias="CLICKHOUSE_HOST")
    clickhouse_port: int = Field(8123, alias="CLICKHOUSE_PORT")
    clickhouse_database: str = Field("performance_test", alias="CLICKHOUSE_DATABASE")
    clickhouse_username: str = Field("default", alias="CLICKHOUSE_USERNAME")
    clickhouse_password: str = Field("", alias="CLICKHOUSE_PASSWORD")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Benchmark defaults
    benchmark_seed: str = Field("default-benchmark-seed", alias="BENCHMARK_SEED")
    dataset_size: int = Field(10_000_000, ge=0, le=100_000_000, alias="DATASET_SIZE")
    batch_size: int = Field(50_000, ge=1, le=1_000_000, alias="BATCH_SIZE")
    parallel_workers: int = Field(4, ge=1, le=16, alias="PARALLEL_WORKERS")
    query_iterations: int = Field(100, ge=1, le=10_000, alias="QUERY_TEST_ITERATIONS")
    query_time_limit_seconds: float = Field(3600.0, gt=0, alias="QUERY_TEST_TIME_LIMIT_SECONDS")
    query_iteration_timeout_seconds: float | None = Field(
        None, gt=0, alias="QUERY_ITERATION_TIMEOUT_SECONDS"
    )
    warmup_rounds: int = Field(3, ge=0, alias="WARMUP_ROUNDS")

    # Insertion engine
    batch_timeout_seconds: float = Field(300.0, gt=0, alias="BATCH_TIMEOUT_SECONDS")
    worker_init_timeout_seconds: float = Field(15.0, gt=0, alias="WORKER_INIT_TIMEOUT_SECONDS")
    chunk_min_records: int = Field(100_000, ge=1, alias="CHUNK_MIN_RECORDS")
    chunk_max_records: int = Field(500_000, ge=1, alias="CHUNK_MAX_RECORDS")
    progress_interval_seconds: float = Field(0.5, ge=0, alias="PROGRESS_INTERVAL_SECONDS")
    memory_check_every_batches: int = Field(10, ge=1, alias="MEMORY_CHECK_EVERY_BATCHES")
    memory_warning_threshold: float = Field(0.85, gt=0, le=1, alias="MEMORY_WARNING_THRESHOLD")
    profile_tracemalloc: bool = Field(False, alias="PROFILE_TRACEMALLOC")
    checkpoint_path: str = Field(
        "output/checkpoints/benchmark.checkpoint.json", alias="CHECKPOINT_PATH"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def postgres_config(self, indexed: bool = False) -> ConnectionConfig:
        """Connection block for the plain or the indexed PostgreSQL instance."""
        return ConnectionConfig(
            host=self.postgres_indexed_host if indexed else self.postgres_host,
            port=self.postgres_indexed_port if indexed else self.postgres_port,
            database=self.postgres_database,
            username=self.postgres_username,
            password=self.postgres_password,
            statement_timeout_ms=self.db_statement_timeout_ms,
        )

    def clickhouse_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            host=self.clickhouse_host,
            port=self.clickhouse_port,
            database=self.clickhouse_database,
            username=self.clickhouse_username,
            password=self.clickhouse_password,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["ConnectionConfig", "Settings", "get_settings"]
