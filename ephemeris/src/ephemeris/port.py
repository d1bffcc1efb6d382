"""Ephemeris backend interface."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from verity.schemas.ephemeris import HouseCusps, HouseSystem, PositionBatch


class EphemerisUnavailable(RuntimeError):
    """The ephemeris backend cannot answer at all (not a single-body failure)."""


@runtime_checkable
class EphemerisPort(Protocol):
    """Minimal surface the calculator needs from an ephemeris backend.

    ``positions`` reports per-body failures in ``PositionBatch.failures`` and
    raises ``EphemerisUnavailable`` only when nothing could be computed.
    ``houses`` raises ``EphemerisUnavailable`` when cusps cannot be computed.
    """

    name: str

    def positions(self, julian_day: float, bodies: Sequence[str]) -> PositionBatch: ...

    def houses(
        self,
        julian_day: float,
        latitude: float,
        longitude: float,
        system: HouseSystem,
    ) -> HouseCusps: ...
