"""Swiss Ephemeris backend (pyswisseph)."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import swisseph as swe
from verity.schemas.ephemeris import HouseCusps, HouseSystem, PositionBatch, RawPosition

from ephemeris.bodies import BODY_IDS
from ephemeris.port import EphemerisUnavailable

logger = logging.getLogger(__name__)

HOUSE_SYSTEM_CODES: dict[HouseSystem, bytes] = {
    HouseSystem.PLACIDUS: b"P",
    HouseSystem.KOCH: b"K",
    HouseSystem.CAMPANUS: b"C",
    HouseSystem.REGIOMONTANUS: b"R",
    HouseSystem.EQUAL: b"E",
    HouseSystem.WHOLE_SIGN: b"W",
}


class SwissEphemeris:
    """Tropical geocentric positions from Swiss Ephemeris files.

    Falls back to the built-in Moshier model per body when the ephemeris
    files are missing or do not cover the requested date.
    """

    name = "swisseph"

    def __init__(self, ephe_path: str | None = None) -> None:
        path = str(ephe_path or "").strip()
        try:
            swe.set_ephe_path(path if path else None)
        except Exception as exc:
            raise EphemerisUnavailable(f"swisseph initialisation failed: {exc}") from exc

    def _calc(self, julian_day: float, body_id: int) -> tuple[tuple[float, ...], str]:
        try:
            result, _ = swe.calc_ut(julian_day, body_id, swe.FLG_SWIEPH | swe.FLG_SPEED)
            return tuple(result), "swisseph"
        except Exception:
            # Moshier needs no external files
            result, _ = swe.calc_ut(julian_day, body_id, swe.FLG_MOSEPH | swe.FLG_SPEED)
            return tuple(result), "moshier"

    def positions(self, julian_day: float, bodies: Sequence[str]) -> PositionBatch:
        batch = PositionBatch()
        for body in bodies:
            body_id = BODY_IDS.get(body)
            if body_id is None:
                batch.failures[body] = "unknown body"
                continue
            try:
                result, source = self._calc(julian_day, body_id)
            except Exception as exc:
                logger.warning("swisseph failed for %s at JD %s: %s", body, julian_day, exc)
                batch.failures[body] = str(exc)
                continue
            if source != "swisseph":
                logger.debug("%s computed with %s fallback", body, source)
            batch.positions[body] = RawPosition(
                longitude=result[0] % 360.0,
                latitude=result[1],
                distance=result[2],
                speed=result[3],
            )

        if bodies and not batch.positions:
            raise EphemerisUnavailable(
                f"no positions available at JD {julian_day}: " + "; ".join(sorted(batch.failures.values()))
            )
        return batch

    def houses(
        self,
        julian_day: float,
        latitude: float,
        longitude: float,
        system: HouseSystem,
    ) -> HouseCusps:
        hsys = HOUSE_SYSTEM_CODES[HouseSystem(system)]
        try:
            cusp_result, angle_result = swe.houses_ex(julian_day, latitude, longitude, hsys)
        except Exception as exc:
            raise EphemerisUnavailable(f"house calculation failed: {exc}") from exc

        cusps = [float(c) for c in cusp_result]
        # Older pyswisseph releases return a 13-slot array with an unused index 0
        if len(cusps) == 13:
            cusps = cusps[1:]
        return HouseCusps(cusps=cusps, ascendant=angle_result[0], midheaven=angle_result[1])
