"""Prediction potential scoring for a category."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ephemeris.bodies import house_name

from verity.categories import Category, CategoryProfile, profile_for
from verity.schemas.ephemeris import Aspect, BirthChart, LunarPhase, TransitSnapshot
from verity.schemas.predictions import AstroFactor, PredictionPotential

logger = logging.getLogger(__name__)

HOUSE_ACTIVATION_BONUS = 0.2
ASPECT_WEIGHT = 0.3
LUNAR_WEIGHT = 0.2
BASE_WEIGHT = 0.3

BASELINE_NOTE = "Using baseline astrological patterns for prediction"


def lunar_boost(profile: CategoryProfile, phase: LunarPhase | None) -> float:
    """Extra confidence when the current phase favours the category."""
    if phase is None or phase.slug not in profile.favored_lunar_phases:
        return 0.0
    return phase.strength * LUNAR_WEIGHT


class PredictionPotentialAnalyzer:
    """Scores how strongly current transits support a prediction category."""

    def __init__(self, min_confidence: float = 0.3, max_confidence: float = 0.95) -> None:
        if min_confidence > max_confidence:
            raise ValueError("min_confidence must not exceed max_confidence")
        self.min_confidence = min_confidence
        self.max_confidence = max_confidence

    def analyze(
        self,
        category: Category | str,
        transits: TransitSnapshot,
        natal: BirthChart,
        transit_aspects: Sequence[Aspect],
        lunar_phase: LunarPhase | None = None,
    ) -> PredictionPotential:
        profile = profile_for(category)
        phase = lunar_phase if lunar_phase is not None else transits.lunar_phase
        reasoning: list[str] = []
        factors: list[AstroFactor] = []
        total = 0.0

        # Category planets passing through the category's houses
        for planet in profile.planets:
            position = transits.positions.get(planet)
            if position is None or position.house not in profile.houses:
                continue
            total += HOUSE_ACTIVATION_BONUS
            factors.append(
                AstroFactor(
                    kind="house_activation",
                    planet=planet,
                    house=position.house,
                    strength=1.0,
                    contribution=HOUSE_ACTIVATION_BONUS,
                )
            )
            reasoning.append(
                f"{planet.title()} is currently activating your {house_name(position.house)} sector"
            )

        # Favourable transit aspects made by category planets
        for aspect in transit_aspects:
            if aspect.body_a not in profile.planets or aspect.aspect_type not in profile.aspects:
                continue
            contribution = aspect.strength * ASPECT_WEIGHT
            total += contribution
            factors.append(
                AstroFactor(
                    kind="planetary_aspect",
                    planet=aspect.body_a,
                    natal_body=aspect.body_b,
                    aspect=aspect.aspect_type,
                    orb=aspect.orb,
                    strength=aspect.strength,
                    contribution=contribution,
                )
            )
            reasoning.append(
                f"Transiting {aspect.body_a.title()} forms a {aspect.aspect_type} to your natal "
                f"{aspect.body_b.replace('_', ' ').title()}, creating favorable {profile.category.value} energy"
            )

        boost = lunar_boost(profile, phase)
        if boost > 0 and phase is not None:
            total += boost
            factors.append(
                AstroFactor(kind="lunar_phase", phase=phase.slug, strength=phase.strength, contribution=boost)
            )
            reasoning.append(f"The {phase.name} enhances {profile.category.value} manifestation")

        raw = round(total + profile.base_confidence * BASE_WEIGHT, 2)
        confidence = min(raw, self.max_confidence)
        baseline = False
        if confidence < self.min_confidence:
            confidence = self.min_confidence
            baseline = True
            factors.append(AstroFactor(kind="baseline", strength=0.0, contribution=0.0))
            reasoning.append(BASELINE_NOTE)

        if transits.degraded or natal.degraded:
            logger.info(
                "Potential for %s computed from degraded data (transits=%s natal=%s)",
                profile.category.value,
                transits.degraded,
                natal.degraded,
            )

        return PredictionPotential(
            category=profile.category,
            confidence=confidence,
            reasoning=reasoning,
            factors=factors,
            lunar_phase=phase,
            baseline=baseline,
        )
