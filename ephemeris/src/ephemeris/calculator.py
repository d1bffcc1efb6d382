"""Position calculator - transit snapshots and birth charts."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime

from verity.schemas.ephemeris import (
    Aspect,
    BirthChart,
    BirthData,
    PlanetPosition,
    RawPosition,
    TransitSnapshot,
)

from ephemeris.aspects import AspectAnalyzer
from ephemeris.bodies import DERIVED_POINTS, EngineConfig, longitude_to_sign, normalize_degrees, simple_house
from ephemeris.lunar import calculate_lunar_phase
from ephemeris.natal import chart_angles, equal_houses, find_house, resolve_birth_instant
from ephemeris.port import EphemerisPort, EphemerisUnavailable

logger = logging.getLogger(__name__)


def julian_day(year: int, month: int, day: int, hour: float = 0.0) -> float:
    """Julian Day for a proleptic Gregorian calendar date (Meeus, ch. 7)."""
    y = year
    m = month
    if m <= 2:
        y -= 1
        m += 12
    a_term = y // 100
    b_term = 2 - a_term + a_term // 4
    return int(365.25 * (y + 4716)) + int(30.6001 * (m + 1)) + day + hour / 24.0 + b_term - 1524.5


def datetime_to_jd(dt: datetime) -> float:
    """Convert an aware datetime to a UT Julian Day (naive values are taken as UTC)."""
    utc = dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)
    hour = utc.hour + utc.minute / 60.0 + utc.second / 3600.0 + utc.microsecond / 3_600_000_000.0
    return julian_day(utc.year, utc.month, utc.day, hour)


def _annotate(body: str, raw: RawPosition, house: int) -> PlanetPosition:
    longitude = normalize_degrees(raw.longitude)
    sign, degree = longitude_to_sign(longitude)
    return PlanetPosition(
        body=body,
        longitude=longitude,
        latitude=raw.latitude,
        distance=raw.distance,
        speed=raw.speed,
        sign=sign,
        degree=degree,
        retrograde=raw.speed < 0,
        house=house,
    )


class PositionCalculator:
    """Turns ephemeris queries into annotated positions and charts.

    All calculation settings come from the immutable ``EngineConfig`` given
    at construction; the calculator itself holds no mutable state.
    """

    def __init__(
        self,
        port: EphemerisPort,
        config: EngineConfig | None = None,
        analyzer: AspectAnalyzer | None = None,
    ) -> None:
        self.port = port
        self.config = config or EngineConfig.default()
        self.analyzer = analyzer or AspectAnalyzer(self.config)

    def calculate_positions(
        self,
        jd: float,
        bodies: Sequence[str] | None = None,
        cusps: list[float] | None = None,
    ) -> tuple[dict[str, PlanetPosition], list[str]]:
        """Positions for the configured bodies plus derived points.

        Bodies the backend cannot compute are omitted and reported in the
        returned warnings. Raises ``EphemerisUnavailable`` on total failure.
        """
        requested = list(bodies or self.config.bodies)
        batch = self.port.positions(jd, requested)

        warnings: list[str] = []
        for body, reason in sorted(batch.failures.items()):
            logger.warning("Position unavailable for %s at JD %.5f: %s", body, jd, reason)
            warnings.append(f"{body} unavailable: {reason}")

        raw_positions = dict(batch.positions)
        for point, source in DERIVED_POINTS.items():
            source_raw = raw_positions.get(source)
            if source_raw is None:
                continue
            raw_positions[point] = RawPosition(
                longitude=normalize_degrees(source_raw.longitude + 180.0),
                latitude=-source_raw.latitude,
                distance=source_raw.distance,
                speed=source_raw.speed,
            )

        positions: dict[str, PlanetPosition] = {}
        for body, raw in raw_positions.items():
            house = find_house(raw.longitude, cusps) if cusps else simple_house(raw.longitude)
            positions[body] = _annotate(body, raw, house)
        return positions, warnings

    def transit_snapshot(self, target_date: date) -> TransitSnapshot:
        """Positions for a calendar date, computed at noon UTC."""
        dt = datetime(target_date.year, target_date.month, target_date.day, 12, 0, 0, tzinfo=UTC)
        jd = datetime_to_jd(dt)
        try:
            positions, warnings = self.calculate_positions(jd)
        except EphemerisUnavailable as exc:
            logger.warning("Ephemeris unavailable for transits on %s: %s", target_date, exc)
            return TransitSnapshot(
                date_context=target_date,
                julian_day=jd,
                degraded=True,
                warnings=[f"ephemeris unavailable: {exc}"],
                calculated_at=datetime.now(UTC),
            )

        lunar = None
        if "sun" in positions and "moon" in positions:
            lunar = calculate_lunar_phase(positions["sun"].longitude, positions["moon"].longitude)
        return TransitSnapshot(
            date_context=target_date,
            julian_day=jd,
            positions=positions,
            lunar_phase=lunar,
            degraded=bool(warnings),
            warnings=warnings,
            calculated_at=datetime.now(UTC),
        )

    def birth_chart(self, birth_data: BirthData) -> BirthChart:
        """Natal chart for a birth moment and place.

        Houses use the requested system when the birth time is known.
        Without a birth time the chart is cast for local noon and bodies
        keep their sign-based houses.
        """
        birth_dt_utc, timezone_used, warnings = resolve_birth_instant(birth_data)
        jd = datetime_to_jd(birth_dt_utc)
        degraded = False

        try:
            houses = self.port.houses(jd, birth_data.latitude, birth_data.longitude, birth_data.house_system)
            real_cusps = True
        except EphemerisUnavailable as exc:
            logger.warning("House calculation failed, using equal houses: %s", exc)
            warnings.append(f"house calculation failed, fallback equal houses: {exc}")
            houses = equal_houses()
            real_cusps = False
            degraded = True

        cusps = houses.cusps if real_cusps and birth_data.birth_time is not None else None
        try:
            positions, position_warnings = self.calculate_positions(jd, cusps=cusps)
            if position_warnings:
                degraded = True
            warnings.extend(position_warnings)
        except EphemerisUnavailable as exc:
            logger.warning("Ephemeris unavailable for birth chart at JD %.5f: %s", jd, exc)
            warnings.append(f"ephemeris unavailable: {exc}")
            positions = {}
            degraded = True

        return BirthChart(
            julian_day=jd,
            birth_datetime_utc=birth_dt_utc,
            time_known=birth_data.birth_time is not None,
            timezone_used=timezone_used,
            positions=positions,
            angles=chart_angles(houses, birth_data.house_system),
            aspects=self.analyzer.natal_aspects(positions),
            fingerprint=birth_data.fingerprint(),
            degraded=degraded,
            warnings=warnings,
        )

    def transit_aspects(self, snapshot: TransitSnapshot, chart: BirthChart) -> list[Aspect]:
        """Aspects from a day's transits to a natal chart."""
        return self.analyzer.transit_aspects(snapshot.positions, chart.positions)
