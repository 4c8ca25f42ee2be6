"""
Data package for the telemetry benchmark.

Exports the seeded generator and its lazy record stream.
"""

from telemetry_bench.data.generator import (
    DEFAULT_SEED,
    RecordStream,
    SeededDataGenerator,
    generate,
)

__all__ = [
    "DEFAULT_SEED",
    "RecordStream",
    "SeededDataGenerator",
    "generate",
]
