"""Pydantic schemas for ephemeris and chart data."""

from __future__ import annotations

import hashlib
from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class HouseSystem(str, Enum):
    """House division systems supported by the chart calculator."""

    PLACIDUS = "placidus"
    KOCH = "koch"
    CAMPANUS = "campanus"
    REGIOMONTANUS = "regiomontanus"
    EQUAL = "equal"
    WHOLE_SIGN = "whole_sign"


class BirthData(BaseModel):
    """Birth moment and place for a natal chart."""

    model_config = ConfigDict(frozen=True)

    birth_date: date
    birth_time: time | None = None
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    timezone: str = "UTC"
    house_system: HouseSystem = HouseSystem.PLACIDUS

    def fingerprint(self) -> str:
        """Stable digest of the birth data, used to version cached charts."""
        canonical = self.model_dump_json()
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class RawPosition(BaseModel):
    """Ecliptic position exactly as reported by an ephemeris backend."""

    longitude: float
    latitude: float = 0.0
    distance: float = 0.0
    speed: float = 0.0


class PositionBatch(BaseModel):
    """Result of one positions query: successes and per-body failures."""

    positions: dict[str, RawPosition] = Field(default_factory=dict)
    failures: dict[str, str] = Field(default_factory=dict)


class HouseCusps(BaseModel):
    """House cusps and the two primary angles."""

    cusps: list[float] = Field(min_length=12, max_length=12)
    ascendant: float
    midheaven: float


class PlanetPosition(BaseModel):
    """Position of a celestial body with sign and house annotations."""

    body: str
    longitude: float
    latitude: float = 0.0
    distance: float = 0.0
    speed: float = 0.0
    sign: str
    degree: float
    retrograde: bool
    house: int = Field(ge=1, le=12)


class ChartAngles(BaseModel):
    """Angular points and house cusps of a chart."""

    ascendant: float
    midheaven: float
    descendant: float
    imum_coeli: float
    house_cusps: list[float]
    house_system: HouseSystem


class Aspect(BaseModel):
    """An angular relationship between two bodies."""

    body_a: str
    body_b: str
    aspect_type: str
    angle: float
    orb: float = Field(ge=0.0)
    strength: float = Field(ge=0.0, le=1.0)
    exact: bool
    applying: bool | None = None


class LunarPhase(BaseModel):
    """Lunar phase bucket and its weight."""

    name: str
    slug: str
    angle: float = Field(ge=0.0, lt=360.0)
    strength: float = Field(ge=0.0, le=1.0)


class TransitSnapshot(BaseModel):
    """Positions of the tracked bodies for one calendar date (noon UTC)."""

    date_context: date
    julian_day: float
    positions: dict[str, PlanetPosition] = Field(default_factory=dict)
    lunar_phase: LunarPhase | None = None
    degraded: bool = False
    warnings: list[str] = Field(default_factory=list)
    calculated_at: datetime


class BirthChart(BaseModel):
    """A computed natal chart."""

    julian_day: float
    birth_datetime_utc: datetime
    time_known: bool
    timezone_used: str
    positions: dict[str, PlanetPosition] = Field(default_factory=dict)
    angles: ChartAngles
    aspects: list[Aspect] = Field(default_factory=list)
    fingerprint: str
    degraded: bool = False
    warnings: list[str] = Field(default_factory=list)
