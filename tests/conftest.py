"""
Pytest configuration for the telemetry benchmark.

Provides fixtures for:
- Settings overrides for integration tests
- Database reachability checks (integration tests skip without PostgreSQL)
- A clean settings cache between tests
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from telemetry_bench.config import ConnectionConfig, Settings, get_settings
from telemetry_bench.infrastructure.db_factory import build_dsn


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
        postgres_port=int(os.getenv("POSTGRES_PORT", "5432")),
        postgres_username=os.getenv("POSTGRES_USERNAME", "postgres"),
        postgres_password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        postgres_database=os.getenv("POSTGRES_DATABASE", "telemetry_bench_test"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def pg_config(test_settings: Settings) -> ConnectionConfig:
    return test_settings.postgres_config()


@pytest.fixture(scope="session")
def db_connection_available(pg_config: ConnectionConfig) -> bool:
    """
    Check if the PostgreSQL server is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(build_dsn(pg_config, database="postgres"), connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def require_postgres(db_connection_available: bool) -> None:
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")
