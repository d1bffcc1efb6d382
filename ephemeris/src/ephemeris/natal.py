"""Natal chart helpers - birth instant, house placement, and angles."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from verity.schemas.ephemeris import BirthData, ChartAngles, HouseCusps, HouseSystem

from ephemeris.bodies import normalize_degrees

logger = logging.getLogger(__name__)

UNKNOWN_BIRTH_TIME = time(12, 0, 0)


def resolve_birth_instant(birth_data: BirthData) -> tuple[datetime, str, list[str]]:
    """Convert local birth date/time to UTC.

    Returns (birth_datetime_utc, timezone_used, warnings). An unknown birth
    time is taken as local noon; an unknown timezone falls back to UTC.
    """
    warnings: list[str] = []
    bt = birth_data.birth_time or UNKNOWN_BIRTH_TIME
    try:
        tz = ZoneInfo(birth_data.timezone)
        timezone_used = birth_data.timezone
    except (ZoneInfoNotFoundError, ValueError):
        tz = UTC
        timezone_used = "UTC"
        warnings.append(f"invalid timezone '{birth_data.timezone}', fallback to UTC")
        logger.warning("Invalid birth timezone %r, using UTC", birth_data.timezone)

    birth_dt_local = datetime.combine(birth_data.birth_date, bt, tzinfo=tz)
    return birth_dt_local.astimezone(UTC), timezone_used, warnings


def equal_houses() -> HouseCusps:
    """Equal houses from 0 Aries, used when real cusps cannot be computed."""
    cusps = [i * 30.0 for i in range(12)]
    return HouseCusps(cusps=cusps, ascendant=cusps[0], midheaven=cusps[9])


def find_house(longitude: float, cusps: list[float]) -> int:
    """Determine which house a longitude falls in given house cusps."""
    if not cusps or len(cusps) < 12:
        return 1
    longitude = normalize_degrees(longitude)
    for i in range(12):
        cusp_start = cusps[i]
        cusp_end = cusps[(i + 1) % 12]
        if cusp_start <= cusp_end:
            if cusp_start <= longitude < cusp_end:
                return i + 1
        else:
            # Wraps around 0 degrees
            if longitude >= cusp_start or longitude < cusp_end:
                return i + 1
    return 1


def chart_angles(houses: HouseCusps, system: HouseSystem) -> ChartAngles:
    return ChartAngles(
        ascendant=houses.ascendant,
        midheaven=houses.midheaven,
        descendant=normalize_degrees(houses.ascendant + 180.0),
        imum_coeli=normalize_degrees(houses.midheaven + 180.0),
        house_cusps=list(houses.cusps),
        house_system=system,
    )
