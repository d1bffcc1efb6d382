"""Aspect detection and orb scoring."""

from __future__ import annotations

from collections.abc import Mapping

from verity.schemas.ephemeris import Aspect, PlanetPosition

from ephemeris.bodies import DERIVED_POINTS, AspectSpec, EngineConfig


# Pairs that are always in the same exact aspect and carry no information
_DEGENERATE_PAIRS = {frozenset((point, source)) for point, source in DERIVED_POINTS.items()}


def angular_distance(lon1: float, lon2: float) -> float:
    """Calculate the shortest angular distance between two longitudes."""
    diff = abs(lon1 - lon2) % 360.0
    if diff > 180.0:
        diff = 360.0 - diff
    return diff


def _sort_key(aspect: Aspect) -> tuple[float, str, str, str]:
    return (-aspect.strength, aspect.body_a, aspect.body_b, aspect.aspect_type)


class AspectAnalyzer:
    """Finds aspects between sets of positions using a fixed aspect table."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig.default()

    def match(self, lon1: float, lon2: float) -> tuple[AspectSpec, float] | None:
        """Return the nearest aspect type and its orb, if within tolerance."""
        distance = angular_distance(lon1, lon2)
        nearest: AspectSpec | None = None
        nearest_orb = 0.0
        for spec in self.config.aspects:
            orb = abs(distance - spec.angle)
            if nearest is None or orb < nearest_orb:
                nearest = spec
                nearest_orb = orb
        if nearest is None or nearest_orb > nearest.orb:
            return None
        return nearest, nearest_orb

    def _build(
        self,
        body_a: str,
        body_b: str,
        lon1: float,
        lon2: float,
        applying: bool | None = None,
    ) -> Aspect | None:
        found = self.match(lon1, lon2)
        if found is None:
            return None
        spec, raw_orb = found
        # Strength and exactness follow the stored (rounded) orb
        orb = round(raw_orb, 4)
        return Aspect(
            body_a=body_a,
            body_b=body_b,
            aspect_type=spec.name,
            angle=spec.angle,
            orb=orb,
            strength=max(spec.orb - orb, 0.0) / spec.orb,
            exact=orb < self.config.exact_orb,
            applying=applying,
        )

    def natal_aspects(self, positions: Mapping[str, PlanetPosition]) -> list[Aspect]:
        """Aspects for every unordered pair of bodies within one chart."""
        bodies = list(positions)
        found: list[Aspect] = []
        for i, body_a in enumerate(bodies):
            for body_b in bodies[i + 1:]:
                if frozenset((body_a, body_b)) in _DEGENERATE_PAIRS:
                    continue
                aspect = self._build(
                    body_a,
                    body_b,
                    positions[body_a].longitude,
                    positions[body_b].longitude,
                )
                if aspect is not None:
                    found.append(aspect)
        found.sort(key=_sort_key)
        return found

    def transit_aspects(
        self,
        transits: Mapping[str, PlanetPosition],
        natal: Mapping[str, PlanetPosition],
    ) -> list[Aspect]:
        """Aspects from each transiting body to each natal body.

        ``body_a`` is always the transiting body. A transit counts as
        applying while the transiting body moves direct.
        """
        found: list[Aspect] = []
        for transit_body, transit in transits.items():
            for natal_body, natal_position in natal.items():
                aspect = self._build(
                    transit_body,
                    natal_body,
                    transit.longitude,
                    natal_position.longitude,
                    applying=transit.speed > 0,
                )
                if aspect is not None:
                    found.append(aspect)
        found.sort(key=_sort_key)
        return found
