"""Prediction categories and their astrological profiles."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict


class Category(str, Enum):
    LOVE = "love"
    CAREER = "career"
    FINANCE = "finance"
    HEALTH = "health"
    SOCIAL = "social"
    TRAVEL = "travel"


FAVORABLE_ASPECTS: tuple[str, ...] = ("trine", "sextile", "conjunction")


class TemplateSeed(BaseModel):
    """A prediction template shipped with the application."""

    model_config = ConfigDict(frozen=True)

    name: str
    content: str
    specificity_level: str = "medium"
    trigger_factors: tuple[str, ...] = ()


class CategoryProfile(BaseModel):
    """Which planets, houses, aspects, and lunar phases matter for a category."""

    model_config = ConfigDict(frozen=True)

    category: Category
    description: str
    planets: tuple[str, ...]
    houses: tuple[int, ...]
    aspects: tuple[str, ...] = FAVORABLE_ASPECTS
    base_confidence: float
    favored_lunar_phases: tuple[str, ...]
    premium_only: bool = False
    confidence_threshold: float = 0.3
    context: str
    default_template: TemplateSeed
    seed_templates: tuple[TemplateSeed, ...] = ()


_PROFILES = {
    Category.LOVE: CategoryProfile(
        category=Category.LOVE,
        description="Romance, attraction, and close relationships",
        planets=("venus", "moon", "mars"),
        houses=(5, 7, 11),
        base_confidence=0.7,
        favored_lunar_phases=("waxing_crescent", "first_quarter", "full_moon"),
        context="how people respond to your openness",
        default_template=TemplateSeed(
            name="default_love",
            content="A meaningful romantic moment will find you {timeframe}. Pay attention to {context}.",
            specificity_level="low",
        ),
        seed_templates=(
            TemplateSeed(
                name="romantic_encounter",
                content="You will have an unexpected romantic encounter {timeframe}. Pay attention to {context}.",
                specificity_level="high",
                trigger_factors=("venus", "house_5", "trine"),
            ),
            TemplateSeed(
                name="relationship_deepening",
                content="Your relationship will deepen through meaningful communication {timeframe}.",
                specificity_level="medium",
                trigger_factors=("moon", "house_7", "sextile"),
            ),
        ),
    ),
    Category.CAREER: CategoryProfile(
        category=Category.CAREER,
        description="Work, recognition, and professional direction",
        planets=("sun", "mercury", "jupiter", "saturn"),
        houses=(10, 6, 2),
        base_confidence=0.8,
        favored_lunar_phases=("new_moon", "waxing_crescent", "first_quarter"),
        context="conversations with people who shape your work",
        default_template=TemplateSeed(
            name="default_career",
            content="Your professional efforts will draw notice {timeframe}.",
            specificity_level="low",
        ),
        seed_templates=(
            TemplateSeed(
                name="professional_opportunity",
                content="A professional opportunity will present itself {timeframe}, particularly around {context}.",
                specificity_level="high",
                trigger_factors=("jupiter", "house_10", "trine"),
            ),
            TemplateSeed(
                name="recognition_achievement",
                content="You will receive recognition for your recent efforts {timeframe}.",
                specificity_level="medium",
                trigger_factors=("sun", "house_10", "conjunction"),
            ),
        ),
    ),
    Category.FINANCE: CategoryProfile(
        category=Category.FINANCE,
        description="Money, resources, and material security",
        planets=("venus", "jupiter", "sun"),
        houses=(2, 8, 11),
        base_confidence=0.75,
        favored_lunar_phases=("new_moon", "waxing_gibbous", "full_moon"),
        premium_only=True,
        confidence_threshold=0.35,
        context="offers that arrive through your network",
        default_template=TemplateSeed(
            name="default_finance",
            content="A shift in your resources will become clear {timeframe}.",
            specificity_level="low",
        ),
        seed_templates=(
            TemplateSeed(
                name="financial_opportunity",
                content="An unexpected financial opportunity will arise {timeframe}.",
                specificity_level="high",
                trigger_factors=("jupiter", "house_2", "trine"),
            ),
        ),
    ),
    Category.HEALTH: CategoryProfile(
        category=Category.HEALTH,
        description="Energy, vitality, and daily routines",
        planets=("sun", "moon", "mars"),
        houses=(1, 6, 8),
        base_confidence=0.65,
        favored_lunar_phases=("full_moon", "last_quarter", "waning_crescent"),
        context="the rhythm of your daily routine",
        default_template=TemplateSeed(
            name="default_health",
            content="You will notice a clear change in your energy levels {timeframe}.",
            specificity_level="low",
        ),
        seed_templates=(
            TemplateSeed(
                name="vitality_boost",
                content="{planet} brings a noticeable boost in vitality {timeframe}. Use it for {context}.",
                specificity_level="medium",
                trigger_factors=("sun", "mars", "house_1"),
            ),
        ),
    ),
    Category.SOCIAL: CategoryProfile(
        category=Category.SOCIAL,
        description="Friendships, community, and communication",
        planets=("mercury", "venus", "moon"),
        houses=(3, 11, 7),
        base_confidence=0.7,
        favored_lunar_phases=("first_quarter", "full_moon", "waning_gibbous"),
        context="invitations you might usually decline",
        default_template=TemplateSeed(
            name="default_social",
            content="Someone from your wider circle will reach out {timeframe}.",
            specificity_level="low",
        ),
        seed_templates=(
            TemplateSeed(
                name="new_connection",
                content="You will make a meaningful new connection {timeframe}.",
                specificity_level="medium",
                trigger_factors=("mercury", "house_11", "sextile"),
            ),
        ),
    ),
    Category.TRAVEL: CategoryProfile(
        category=Category.TRAVEL,
        description="Journeys, movement, and broadening horizons",
        planets=("mercury", "jupiter", "sun"),
        houses=(3, 9, 12),
        base_confidence=0.8,
        favored_lunar_phases=("new_moon", "first_quarter", "full_moon"),
        premium_only=True,
        confidence_threshold=0.4,
        context="plans that change at short notice",
        default_template=TemplateSeed(
            name="default_travel",
            content="A chance to go somewhere new will come up {timeframe}.",
            specificity_level="low",
        ),
        seed_templates=(
            TemplateSeed(
                name="journey_invitation",
                content="An invitation to travel will reach you {timeframe}, connected to your {house} sector.",
                specificity_level="high",
                trigger_factors=("jupiter", "house_9", "trine"),
            ),
        ),
    ),
}

# Fails at import time if a category is added without a profile
_missing = set(Category) - set(_PROFILES)
if _missing:
    raise RuntimeError(f"categories without a profile: {sorted(c.value for c in _missing)}")

CATEGORY_PROFILES = MappingProxyType(_PROFILES)


def profile_for(category: Category | str) -> CategoryProfile:
    """Look up the profile for a category value; raises ValueError if unknown."""
    return CATEGORY_PROFILES[Category(category)]
