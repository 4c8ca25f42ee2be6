"""
Domain package for the telemetry benchmark.

Exports the record schema and storage targets used across the generator, the
insertion engine and the database adapters.
"""

from telemetry_bench.domain.models import DatabaseTarget, EntityProfile, SyntheticRecord

__all__ = [
    "DatabaseTarget",
    "EntityProfile",
    "SyntheticRecord",
]
