from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from telemetry_bench.data import generator as gen
from telemetry_bench.data.generator import (
    DEFAULT_REFERENCE_TIME,
    DEFAULT_SEED,
    REGIONS,
    SeededDataGenerator,
    generate,
    profile_pool_size,
)
from telemetry_bench.domain.models import SyntheticRecord
from telemetry_bench.errors import GenerationError

SCENARIO_COUNT = 1000
SMALL_COUNT = 50


def test_same_seed_yields_identical_sequences() -> None:
    first = list(generate("seedX", SCENARIO_COUNT))
    second = list(generate("seedX", SCENARIO_COUNT))

    assert len(first) == SCENARIO_COUNT
    assert first == second
    assert [r.as_row() for r in first] == [r.as_row() for r in second]


def test_stream_is_restartable() -> None:
    stream = generate("restart", SMALL_COUNT)
    assert list(stream) == list(stream)
    assert len(stream) == SMALL_COUNT


def test_different_seeds_diverge() -> None:
    assert list(generate("a", SMALL_COUNT)) != list(generate("b", SMALL_COUNT))


def test_record_at_index_matches_full_iteration() -> None:
    stream = generate("seedX", SMALL_COUNT)
    records = list(stream)
    assert stream.record(17) == records[17]
    assert list(stream.iter_from(40)) == records[40:]


def test_empty_or_missing_seed_uses_default() -> None:
    assert SeededDataGenerator("").seed == DEFAULT_SEED
    assert SeededDataGenerator(None).seed == DEFAULT_SEED
    assert list(generate(None, 5)) == list(generate(DEFAULT_SEED, 5))


def test_zero_count_yields_empty_sequence_without_profiles(monkeypatch) -> None:
    def _fail(self, count):
        raise AssertionError("profile pool must not be built for an empty stream")

    monkeypatch.setattr(SeededDataGenerator, "build_profiles", _fail)
    stream = generate("seedX", 0)
    assert list(stream) == []
    assert list(stream.chunks(10)) == []


@pytest.mark.parametrize(
    ("count", "expected"),
    [(1, 1), (9, 1), (10, 1), (11, 2), (1000, 100), (50_000, 5000), (10_000_000, 5000)],
)
def test_profile_pool_size_is_bounded(count: int, expected: int) -> None:
    assert profile_pool_size(count) == expected


def test_small_counts_still_get_one_profile() -> None:
    stream = generate("tiny", 3)
    assert len(stream.profiles) == 1
    assert len({r.hex for r in stream}) == 1


@pytest.mark.parametrize("count", [-1, 1.5, "10", True])
def test_invalid_count_raises_generation_error(count) -> None:
    with pytest.raises(GenerationError):
        SeededDataGenerator("seed").generate(count)


def test_non_string_seed_raises_generation_error() -> None:
    with pytest.raises(GenerationError):
        SeededDataGenerator(42)  # type: ignore[arg-type]


def test_chunks_are_bounded_and_ordered() -> None:
    stream = generate("chunks", 25)
    chunks = list(stream.chunks(10))
    assert [len(c) for c in chunks] == [10, 10, 5]
    assert [r for c in chunks for r in c] == list(stream)


def test_numeric_policy_and_field_ranges() -> None:
    window_start = DEFAULT_REFERENCE_TIME - timedelta(days=7)
    for record in generate("ranges", 500):
        assert round(record.lat, 6) == record.lat
        assert round(record.lon, 6) == record.lon
        assert any(
            r.lat_min <= record.lat <= r.lat_max and r.lon_min <= record.lon <= r.lon_max
            for r in REGIONS
        )
        assert isinstance(record.alt_baro, int)
        assert isinstance(record.gs, int)
        assert 100 <= record.gs <= 600
        assert 0 <= record.track <= 360
        assert window_start <= record.timestamp <= DEFAULT_REFERENCE_TIME
        assert len(record.hex) == 6
        assert len(record.squawk) == 4


def test_commercial_profiles_fly_higher() -> None:
    stream = generate("altitudes", 2000)
    profiles = {(p.hex, p.flight, p.registration): p for p in stream.profiles}
    for record in stream:
        profile = profiles[(record.hex, record.flight, record.registration)]
        if profile.is_commercial:
            assert 20_000 <= record.alt_baro <= 40_000
        else:
            assert 0 <= record.alt_baro <= 15_000


def test_optional_fields_are_sometimes_absent() -> None:
    records = list(generate("nullable", 2000))
    for name in ("aircraft_type", "geom_rate", "nav_qnh", "nav_altitude_mcp", "nav_heading"):
        values = [getattr(r, name) for r in records]
        assert any(v is None for v in values), name
        assert any(v is not None for v in values), name

    heading_present = sum(r.nav_heading is not None for r in records) / len(records)
    assert 0.5 < heading_present < 0.7


def test_null_sentinels_replace_absent_values() -> None:
    record = next(r for r in generate("sentinel", 500) if r.aircraft_type is None)
    row = record.as_row(null_sentinels=True)
    columns = SyntheticRecord.column_names()
    assert row[columns.index("aircraft_type")] == ""
    assert record.as_row()[columns.index("aircraft_type")] is None


def test_round_half_up() -> None:
    assert gen._round_half_up(2.5) == 3
    assert gen._round_half_up(-2.5) == -2
    assert gen._round_half_up(1.49) == 1


def test_custom_reference_time_shifts_timestamps() -> None:
    reference = datetime(2030, 6, 1)
    for record in generate("shift", 100, reference_time=reference):
        assert reference - timedelta(days=7) <= record.timestamp <= reference
