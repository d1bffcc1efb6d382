"""Body definitions, aspect tables, and sign data."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field

# Celestial body IDs for pyswisseph
# These map to swisseph constants
BODY_IDS: dict[str, int] = {
    "sun": 0,  # SE_SUN
    "moon": 1,  # SE_MOON
    "mercury": 2,  # SE_MERCURY
    "venus": 3,  # SE_VENUS
    "mars": 4,  # SE_MARS
    "jupiter": 5,  # SE_JUPITER
    "saturn": 6,  # SE_SATURN
    "uranus": 7,  # SE_URANUS
    "neptune": 8,  # SE_NEPTUNE
    "pluto": 9,  # SE_PLUTO
    "north_node": 11,  # SE_TRUE_NODE
    "chiron": 15,  # SE_CHIRON
}

# Points derived from another body instead of queried: name -> source body
DERIVED_POINTS: dict[str, str] = {
    "south_node": "north_node",
}

# Bodies queried from the ephemeris
QUERIED_BODIES: tuple[str, ...] = tuple(BODY_IDS.keys())

# Bodies present in a full chart (queried + derived)
ALL_BODIES: tuple[str, ...] = QUERIED_BODIES + tuple(DERIVED_POINTS.keys())

# Zodiac signs in order
SIGNS = [
    "Aries",
    "Taurus",
    "Gemini",
    "Cancer",
    "Leo",
    "Virgo",
    "Libra",
    "Scorpio",
    "Sagittarius",
    "Capricorn",
    "Aquarius",
    "Pisces",
]

# Life areas by house number
HOUSE_NAMES: dict[int, str] = {
    1: "Self/Identity",
    2: "Resources/Values",
    3: "Communication",
    4: "Home/Family",
    5: "Romance/Creativity",
    6: "Health/Work",
    7: "Partnerships",
    8: "Transformation",
    9: "Expansion/Travel",
    10: "Career/Reputation",
    11: "Friendships/Goals",
    12: "Spirituality/Subconscious",
}


class AspectSpec(BaseModel):
    """One aspect type: exact angle and orb tolerance in degrees."""

    model_config = ConfigDict(frozen=True)

    name: str
    angle: float = Field(ge=0.0, le=180.0)
    orb: float = Field(gt=0.0)


MAJOR_ASPECTS: tuple[AspectSpec, ...] = (
    AspectSpec(name="conjunction", angle=0.0, orb=8.0),
    AspectSpec(name="sextile", angle=60.0, orb=4.0),
    AspectSpec(name="square", angle=90.0, orb=6.0),
    AspectSpec(name="trine", angle=120.0, orb=6.0),
    AspectSpec(name="quincunx", angle=150.0, orb=3.0),
    AspectSpec(name="opposition", angle=180.0, orb=8.0),
)

MINOR_ASPECTS: tuple[AspectSpec, ...] = (
    AspectSpec(name="semisextile", angle=30.0, orb=2.0),
    AspectSpec(name="semisquare", angle=45.0, orb=2.0),
    AspectSpec(name="sesquisquare", angle=135.0, orb=2.0),
)


class EngineConfig(BaseModel):
    """Immutable calculation settings shared by the calculator and analyzer."""

    model_config = ConfigDict(frozen=True)

    bodies: tuple[str, ...] = QUERIED_BODIES
    aspects: tuple[AspectSpec, ...] = MAJOR_ASPECTS
    exact_orb: float = 1.0

    @classmethod
    def default(cls, include_minor_aspects: bool = False) -> EngineConfig:
        aspects = MAJOR_ASPECTS + MINOR_ASPECTS if include_minor_aspects else MAJOR_ASPECTS
        return cls(aspects=aspects)

    def aspect(self, name: str) -> AspectSpec | None:
        for spec in self.aspects:
            if spec.name == name:
                return spec
        return None


def normalize_degrees(value: float) -> float:
    """Wrap an angle into [0, 360)."""
    wrapped = value % 360.0
    # -1e-15 % 360 rounds up to exactly 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


def longitude_to_sign(longitude: float) -> tuple[str, float]:
    """Convert ecliptic longitude to sign and degree within sign."""
    longitude = normalize_degrees(longitude)
    sign_index = int(longitude / 30.0)
    degree = longitude - (sign_index * 30.0)
    return SIGNS[sign_index], degree


def simple_house(longitude: float) -> int:
    """Sign-based house index: Aries is the 1st house, Pisces the 12th."""
    return math.floor(normalize_degrees(longitude) / 30.0) + 1


def house_name(house: int) -> str:
    return HOUSE_NAMES.get(house, f"House {house}")
