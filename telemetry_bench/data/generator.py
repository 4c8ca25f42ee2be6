"""
Deterministic synthetic telemetry generator.

Every record is derived from its own RNG seeded with `"<seed>:<index>"`, so the
record at a given index depends only on the seed, the index and the entity
profile pool (itself derived from the seed and the total count). This makes the
stream restartable from any position and identical across processes, machines
and runs. Records are produced lazily; `RecordStream.chunks()` hands them out
in bounded lists so callers never hold the full dataset.

Usage:
    from telemetry_bench.data.generator import generate

    stream = generate("seedX", 1_000_000)
    for chunk in stream.chunks(100_000):
        ...
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import cached_property
from itertools import islice
from typing import Iterator, List, Optional, Sequence, Tuple

from telemetry_bench.domain.models import EntityProfile, SyntheticRecord
from telemetry_bench.errors import GenerationError
from telemetry_bench.utils.logging import get_logger

DEFAULT_SEED = "default-benchmark-seed"
# Timestamps are naive UTC, counted back from a fixed instant.
DEFAULT_REFERENCE_TIME = datetime(2025, 1, 1)
DEFAULT_TIME_WINDOW = timedelta(days=7)
MAX_PROFILES = 5000
PROFILES_PER_RECORD = 10

CATEGORIES = ("A1", "A2", "A3", "A4", "A5", "A6", "A7", "B1", "B2", "C1", "C2")
EMERGENCY_STATES = ("none", "general", "lifeguard", "minfuel", "nordo", "unlawful", "downed")
SIL_TYPES = ("perhour", "persample")
NAV_MODES = ("autopilot", "althold", "approach", "lnav", "tcas", "vnav")
FLIGHT_PREFIXES = ("AAL", "DAL", "UAL", "SWA", "JBU", "ASA", "SKW", "CTM", "BAW", "AFR")
MILITARY_CALLSIGNS = ("TETON", "REACH", "SENTRY", "KNIFE", "VAPOR", "RIDER")
REGISTRATION_PREFIXES = ("N", "G-", "F-", "D-", "C-", "92-", "11-", "86-")
AIRCRAFT_TYPES = ("B738", "A320", "B777", "A330", "C172", "PA28", "B752", "E145", "CRJ2", "DH8D")
COMMON_SQUAWKS = ("1200", "7000", "2000", "0400")


@dataclass(frozen=True)
class Region:
    name: str
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float


REGIONS = (
    Region("US_EAST", 25, 47, -85, -65),
    Region("US_WEST", 32, 48, -125, -100),
    Region("EUROPE", 35, 60, -10, 25),
    Region("ATLANTIC", 30, 50, -60, -20),
)


def profile_pool_size(count: int) -> int:
    """Number of entity profiles drawn for a run of `count` records."""
    return max(1, min(math.ceil(count / PROFILES_PER_RECORD), MAX_PROFILES))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _round_coordinate(value: float) -> float:
    return _round_half_up(value * 1_000_000) / 1_000_000


def _present(rng: random.Random, probability: float) -> bool:
    """Bernoulli draw deciding whether an optional field holds a value."""
    return rng.random() < probability


class SeededDataGenerator:
    """
    Reproducible record factory.

    Parameters
    ----------
    seed : str | None
        RNG seed. Empty or omitted falls back to DEFAULT_SEED.
    reference_time : datetime | None
        End of the timestamp window (naive UTC). Defaults to a fixed instant so
        generated timestamps are reproducible too.
    window : timedelta
        Length of the timestamp window ending at `reference_time`.
    """

    def __init__(
        self,
        seed: Optional[str] = None,
        reference_time: Optional[datetime] = None,
        window: timedelta = DEFAULT_TIME_WINDOW,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if seed is not None and not isinstance(seed, str):
            raise GenerationError(f"Seed must be a string, got {type(seed).__name__}")
        self.seed = seed or DEFAULT_SEED
        self.reference_time = reference_time or DEFAULT_REFERENCE_TIME
        self.window = window
        self._log = logger or get_logger(__name__)

    def generate(self, count: int) -> RecordStream:
        """Lazy, restartable stream of `count` records."""
        if isinstance(count, bool) or not isinstance(count, int):
            raise GenerationError(f"Record count must be an integer, got {count!r}")
        if count < 0:
            raise GenerationError(f"Record count must be non-negative, got {count}")
        return RecordStream(self, count)

    def build_profiles(self, count: int) -> Tuple[EntityProfile, ...]:
        rng = random.Random(f"{self.seed}:profiles")
        size = profile_pool_size(count)
        profiles = tuple(self._make_profile(rng) for _ in range(size))
        self._log.debug(
            f"Generated {size} entity profiles", extra={"seed": self.seed, "profiles": size}
        )
        return profiles

    def _make_profile(self, rng: random.Random) -> EntityProfile:
        military = rng.random() < 0.1
        if military:
            flight = f"{rng.choice(MILITARY_CALLSIGNS)}{rng.randrange(99):02d}"
        else:
            flight = f"{rng.choice(FLIGHT_PREFIXES)}{rng.randrange(9999):04d}"
        return EntityProfile(
            hex=f"{rng.randrange(0xFFFFFF):06x}",
            flight=flight,
            registration=f"{rng.choice(REGISTRATION_PREFIXES)}{rng.randrange(99999):04d}",
            category=rng.choice(CATEGORIES),
            military=military,
        )

    def record_at(self, index: int, profiles: Sequence[EntityProfile]) -> SyntheticRecord:
        """Build the record at `index`; pure in (seed, index, profiles)."""
        rng = random.Random(f"{self.seed}:{index}")

        moment = (self.reference_time - self.window * rng.random()).replace(microsecond=0)
        profile = profiles[rng.randrange(len(profiles))]
        region = rng.choice(REGIONS)
        lat = region.lat_min + rng.random() * (region.lat_max - region.lat_min)
        lon = region.lon_min + rng.random() * (region.lon_max - region.lon_min)

        commercial = profile.is_commercial
        alt_baro = 20_000 + rng.random() * 20_000 if commercial else rng.random() * 15_000

        # Field order matters: each draw consumes the record's RNG in sequence.
        fields = dict(
            zorder_coordinate=int(math.floor((lat + 90) * 1_000_000 + (lon + 180) * 1_000)),
            approach=rng.random() < 0.05,
            autopilot=rng.random() < (0.8 if commercial else 0.3),
            althold=rng.random() < 0.7,
            lnav=rng.random() < (0.6 if commercial else 0.2),
            tcas=rng.random() < (0.9 if commercial else 0.4),
            hex=profile.hex,
            transponder_type="",
            flight=profile.flight,
            registration=profile.registration,
            aircraft_type=rng.choice(AIRCRAFT_TYPES) if _present(rng, 0.8) else None,
            db_flags=1,
            lat=_round_coordinate(lat),
            lon=_round_coordinate(lon),
            alt_baro=_round_half_up(alt_baro),
            alt_baro_is_ground=alt_baro < 50,
            alt_geom=_round_half_up(alt_baro + (rng.random() - 0.5) * 200),
            gs=_round_half_up(rng.random() * 500 + 100),
            track=_round_half_up(rng.random() * 360),
            baro_rate=_round_half_up((rng.random() - 0.5) * 4000),
            geom_rate=_round_half_up((rng.random() - 0.5) * 128) if _present(rng, 0.9) else None,
            squawk=self._squawk(rng),
            emergency=rng.choice(EMERGENCY_STATES),
            category=profile.category,
            nav_qnh=(
                max(0, _round_half_up(1013 + (rng.random() - 0.5) * 50))
                if _present(rng, 0.8)
                else None
            ),
            nav_altitude_mcp=(
                max(0, _round_half_up(alt_baro + (rng.random() - 0.5) * 1000))
                if _present(rng, 0.7)
                else None
            ),
            nav_heading=_round_half_up(rng.random() * 360) if _present(rng, 0.6) else None,
            nav_modes=tuple(mode for mode in NAV_MODES if rng.random() < 0.3),
            nic=rng.randrange(11),
            rc=rng.randrange(500),
            seen_pos=rng.random() * 10,
            version=2 if rng.random() < 0.9 else 1,
            nic_baro=rng.randrange(2),
            nac_p=rng.randrange(12),
            nac_v=rng.randrange(5),
            sil=rng.randrange(4),
            sil_type=rng.choice(SIL_TYPES),
            gva=rng.randrange(3),
            sda=rng.randrange(3),
            alert=0,
            spi=0,
            mlat=(),
            tisb=(),
            messages=rng.randrange(100_000),
            seen=rng.random() * 60,
            rssi=-5 - rng.random() * 15,
            timestamp=moment,
        )
        # Values are generated with their final types; skip re-validation.
        return SyntheticRecord.model_construct(**fields)

    @staticmethod
    def _squawk(rng: random.Random) -> str:
        if rng.random() < 0.3:
            return rng.choice(COMMON_SQUAWKS)
        return f"{rng.randrange(7777):04d}"


class RecordStream:
    """
    Finite, restartable sequence of generated records.

    Iterating creates a fresh pass from index 0; the profile pool is built on
    first use only, so an empty stream never touches it.
    """

    def __init__(self, generator: SeededDataGenerator, count: int) -> None:
        self._generator = generator
        self._count = count

    @property
    def seed(self) -> str:
        return self._generator.seed

    @cached_property
    def profiles(self) -> Tuple[EntityProfile, ...]:
        return self._generator.build_profiles(self._count)

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[SyntheticRecord]:
        return self.iter_from(0)

    def iter_from(self, start: int) -> Iterator[SyntheticRecord]:
        if start >= self._count:
            return
        profiles = self.profiles
        for index in range(start, self._count):
            yield self._generator.record_at(index, profiles)

    def record(self, index: int) -> SyntheticRecord:
        if not 0 <= index < self._count:
            raise IndexError(f"Record index {index} out of range for {self._count} records")
        return self._generator.record_at(index, self.profiles)

    def chunks(self, size: int) -> Iterator[List[SyntheticRecord]]:
        """Yield consecutive lists of at most `size` records."""
        if size <= 0:
            raise GenerationError(f"Chunk size must be positive, got {size}")
        iterator = iter(self)
        while True:
            chunk = list(islice(iterator, size))
            if not chunk:
                return
            yield chunk


def generate(
    seed: Optional[str],
    count: int,
    reference_time: Optional[datetime] = None,
) -> RecordStream:
    """Shortcut for `SeededDataGenerator(seed, reference_time).generate(count)`."""
    return SeededDataGenerator(seed, reference_time=reference_time).generate(count)


__all__ = [
    "DEFAULT_REFERENCE_TIME",
    "DEFAULT_SEED",
    "REGIONS",
    "RecordStream",
    "SeededDataGenerator",
    "generate",
    "profile_pool_size",
]
