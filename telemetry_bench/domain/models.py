"""
Domain models for the telemetry benchmark.

Defines the fixed record schema shared by the generator and both storage
backends. Optional fields are independently nullable: `None` means "no value"
and each adapter decides how to store it (SQL NULL, or a zero/empty sentinel
for stores that prefer non-nullable columns).
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field


class DatabaseTarget(str, Enum):
    """Storage backends a batch can be routed to."""

    CLICKHOUSE = "clickhouse"
    POSTGRESQL = "postgresql"


class EntityProfile(BaseModel):
    """
    Reusable synthetic identity sampled by many records.
    """

    hex: str = Field(..., description="24-bit transponder address, 6 hex digits.")
    flight: str = Field(..., description="Callsign.")
    registration: str = Field(..., description="Tail registration.")
    category: str = Field(..., description="Emitter category, e.g. A3.")
    military: bool = Field(False, description="Whether the callsign is military.")

    model_config = {"frozen": True}

    @property
    def is_commercial(self) -> bool:
        return self.category.startswith("A") and not self.military


# Sentinels used by stores whose columns are not nullable.
_NULL_SENTINELS = {
    "aircraft_type": "",
    "geom_rate": 0,
    "nav_qnh": 0,
    "nav_altitude_mcp": 0,
    "nav_heading": 0,
}


class SyntheticRecord(BaseModel):
    """
    One tracked-entity observation, aligned with the `performance_test` table.
    """

    zorder_coordinate: int
    approach: bool
    autopilot: bool
    althold: bool
    lnav: bool
    tcas: bool
    hex: str
    transponder_type: str
    flight: str
    registration: str
    aircraft_type: Optional[str] = None
    db_flags: int
    lat: float
    lon: float
    alt_baro: int
    alt_baro_is_ground: bool
    alt_geom: int
    gs: int
    track: int
    baro_rate: int
    geom_rate: Optional[int] = None
    squawk: str
    emergency: str
    category: str
    nav_qnh: Optional[int] = None
    nav_altitude_mcp: Optional[int] = None
    nav_heading: Optional[int] = None
    nav_modes: Tuple[str, ...] = ()
    nic: int
    rc: int
    seen_pos: float
    version: int
    nic_baro: int
    nac_p: int
    nac_v: int
    sil: int
    sil_type: str
    gva: int
    sda: int
    alert: int
    spi: int
    mlat: Tuple[str, ...] = ()
    tisb: Tuple[str, ...] = ()
    messages: int
    seen: float
    rssi: float
    timestamp: datetime

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @classmethod
    def column_names(cls) -> List[str]:
        """Column order used by every adapter."""
        return list(cls.model_fields)

    def as_row(self, null_sentinels: bool = False) -> List[Any]:
        """
        Values in column order.

        Tuples become lists so drivers adapt them as arrays. With
        `null_sentinels`, absent optional values are replaced by zero/empty.
        """
        row: List[Any] = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is None and null_sentinels:
                value = _NULL_SENTINELS[name]
            elif isinstance(value, tuple):
                value = list(value)
            row.append(value)
        return row


__all__ = ["DatabaseTarget", "EntityProfile", "SyntheticRecord"]
