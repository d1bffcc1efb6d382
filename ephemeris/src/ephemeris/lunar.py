"""Lunar phase classification."""

from __future__ import annotations

from verity.schemas.ephemeris import LunarPhase

# Eight 45-degree buckets of the Moon's elongation from the Sun:
# (start angle, slug, display name, strength)
PHASES: list[tuple[float, str, str, float]] = [
    (0.0, "new_moon", "New Moon", 0.8),
    (45.0, "waxing_crescent", "Waxing Crescent", 0.6),
    (90.0, "first_quarter", "First Quarter", 0.7),
    (135.0, "waxing_gibbous", "Waxing Gibbous", 0.6),
    (180.0, "full_moon", "Full Moon", 0.9),
    (225.0, "waning_gibbous", "Waning Gibbous", 0.5),
    (270.0, "last_quarter", "Last Quarter", 0.7),
    (315.0, "waning_crescent", "Waning Crescent", 0.4),
]

PHASE_SLUGS = [slug for _, slug, _, _ in PHASES]


def phase_angle(sun_longitude: float, moon_longitude: float) -> float:
    """Moon's elongation from the Sun in [0, 360)."""
    angle = (moon_longitude - sun_longitude + 360.0) % 360.0
    return 0.0 if angle >= 360.0 else angle


def calculate_lunar_phase(sun_longitude: float, moon_longitude: float) -> LunarPhase:
    """Classify the Sun-Moon elongation into one of eight phases."""
    angle = phase_angle(sun_longitude, moon_longitude)
    _, slug, name, strength = PHASES[int(angle // 45.0) % len(PHASES)]
    return LunarPhase(name=name, slug=slug, angle=round(angle, 4) % 360.0, strength=strength)
