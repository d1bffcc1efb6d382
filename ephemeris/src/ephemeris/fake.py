"""Deterministic ephemeris backend for tests and offline development.

Positions are not astronomically accurate. Each body starts at a
hash-derived longitude and moves at its mean daily motion, so results are
reproducible, continuous in time, and retrograde only for the nodes.
Individual bodies can be pinned, failed, or the whole backend switched off.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping, Sequence

from verity.schemas.ephemeris import HouseCusps, HouseSystem, PositionBatch, RawPosition

from ephemeris.bodies import BODY_IDS, normalize_degrees
from ephemeris.port import EphemerisUnavailable

J2000 = 2451545.0

# Mean daily motion in degrees
MEAN_MOTION: dict[str, float] = {
    "sun": 0.9856,
    "moon": 13.1764,
    "mercury": 1.3833,
    "venus": 1.2,
    "mars": 0.524,
    "jupiter": 0.0831,
    "saturn": 0.0335,
    "uranus": 0.0117,
    "neptune": 0.006,
    "pluto": 0.004,
    "north_node": -0.0529,
    "chiron": 0.0195,
}


def _seed_longitude(body: str) -> float:
    h = int(hashlib.sha256(body.encode()).hexdigest()[:8], 16)
    return (h % 36000) / 100.0


class DeterministicEphemeris:
    """Reproducible stand-in for :class:`ephemeris.swiss.SwissEphemeris`."""

    name = "deterministic"

    def __init__(
        self,
        pinned: Mapping[str, RawPosition | float] | None = None,
        failing_bodies: Iterable[str] = (),
        unavailable: bool = False,
        houses_unavailable: bool = False,
    ) -> None:
        self.pinned: dict[str, RawPosition] = {}
        for body, value in (pinned or {}).items():
            if isinstance(value, RawPosition):
                self.pinned[body] = value
            else:
                self.pinned[body] = RawPosition(longitude=float(value), speed=MEAN_MOTION.get(body, 1.0))
        self.failing_bodies = set(failing_bodies)
        self.unavailable = unavailable
        self.houses_unavailable = houses_unavailable
        self.calls: list[tuple[str, float]] = []

    def _position(self, body: str, julian_day: float) -> RawPosition:
        if body in self.pinned:
            return self.pinned[body]
        motion = MEAN_MOTION.get(body, 1.0)
        longitude = normalize_degrees(_seed_longitude(body) + motion * (julian_day - J2000))
        return RawPosition(longitude=longitude, latitude=0.0, distance=1.0, speed=motion)

    def positions(self, julian_day: float, bodies: Sequence[str]) -> PositionBatch:
        self.calls.append(("positions", julian_day))
        if self.unavailable:
            raise EphemerisUnavailable("deterministic ephemeris switched off")

        batch = PositionBatch()
        for body in bodies:
            if body in self.failing_bodies or (body not in BODY_IDS and body not in self.pinned):
                batch.failures[body] = f"{body} unavailable"
                continue
            batch.positions[body] = self._position(body, julian_day)
        if bodies and not batch.positions:
            raise EphemerisUnavailable("no positions available")
        return batch

    def houses(
        self,
        julian_day: float,
        latitude: float,
        longitude: float,
        system: HouseSystem,
    ) -> HouseCusps:
        self.calls.append(("houses", julian_day))
        if self.unavailable or self.houses_unavailable:
            raise EphemerisUnavailable("deterministic houses switched off")

        # Sidereal rotation of roughly 361 degrees per day plus the observer's longitude
        ascendant = normalize_degrees(360.9856 * (julian_day - J2000) + longitude)
        if HouseSystem(system) is HouseSystem.WHOLE_SIGN:
            start = ascendant - (ascendant % 30.0)
            cusps = [normalize_degrees(start + 30.0 * i) for i in range(12)]
        else:
            cusps = [normalize_degrees(ascendant + 30.0 * i) for i in range(12)]
        midheaven = normalize_degrees(ascendant - 90.0)
        return HouseCusps(cusps=cusps, ascendant=ascendant, midheaven=midheaven)
