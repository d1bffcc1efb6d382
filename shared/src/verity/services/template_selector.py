"""Template selection and prediction text rendering."""

from __future__ import annotations

import logging
import string
from statistics import fmean

from ephemeris.bodies import house_name
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from verity.categories import Category, profile_for
from verity.models.template import PredictionTemplate
from verity.schemas.predictions import AstroFactor, PredictionPotential, RenderedPrediction, TemplateChoice

logger = logging.getLogger(__name__)

CANDIDATE_LIMIT = 10
STRONG_ASPECT = 0.7
HIGH_CONFIDENCE = 0.8
LOW_CONFIDENCE = 0.5

HIGH_CONFIDENCE_NOTE = "The astrological indicators are particularly strong for this prediction."
LOW_CONFIDENCE_NOTE = "Pay attention to subtle signs and trust your intuition."

SPECIFICITY_BASE = {"high": 0.6, "medium": 0.5, "low": 0.4}


def template_fit(trigger_factors: list[str] | tuple[str, ...], tokens: set[str]) -> float:
    """Share of a template's trigger factors present right now."""
    triggers = {str(t).strip().lower() for t in trigger_factors if str(t).strip()}
    if not triggers:
        return 0.0
    return len(triggers & tokens) / len(triggers)


def score_template(confidence_multiplier: float, trigger_factors: list[str] | tuple[str, ...], tokens: set[str]) -> float:
    return confidence_multiplier * (1.0 + template_fit(trigger_factors, tokens))


def peak_hours(factors: list[AstroFactor], timeframe_hours: int) -> int | None:
    """Hours from now at which the strong aspects are expected to peak.

    Tighter aspects peak earlier: the mean strength of aspects above the
    strong threshold places the peak inside the first half of the window.
    """
    strong = [f.strength for f in factors if f.kind == "planetary_aspect" and f.strength > STRONG_ASPECT]
    if not strong:
        return None
    mean_strength = fmean(strong)
    return max(1, round(timeframe_hours * (1.0 - mean_strength) * 0.5 + timeframe_hours * 0.25))


def _describe_timeframe(hours: int) -> str:
    return f"within the next {hours} hours"


def _lead_factor(potential: PredictionPotential, kind: str) -> AstroFactor | None:
    matching = [f for f in potential.factors if f.kind == kind]
    if not matching:
        return None
    return max(matching, key=lambda f: f.strength)


class _Variables(dict):
    """Format mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class TemplateSelector:
    """Picks the best-performing template for a category and renders it."""

    def __init__(self, candidate_limit: int = CANDIDATE_LIMIT) -> None:
        self.candidate_limit = candidate_limit

    async def candidates(self, session: AsyncSession, category: Category | str) -> list[PredictionTemplate]:
        result = await session.execute(
            select(PredictionTemplate)
            .where(
                PredictionTemplate.category == Category(category).value,
                PredictionTemplate.active.is_(True),
            )
            .order_by(
                PredictionTemplate.success_rate.desc(),
                PredictionTemplate.usage_count.asc(),
                PredictionTemplate.id.asc(),
            )
            .limit(self.candidate_limit)
        )
        return list(result.scalars().all())

    async def select(self, session: AsyncSession, potential: PredictionPotential) -> TemplateChoice:
        """Choose a template and count its use.

        Falls back to the category's built-in template when none are stored.
        """
        profile = profile_for(potential.category)
        candidates = await self.candidates(session, profile.category)
        if not candidates:
            logger.info("No stored templates for %s, using default", profile.category.value)
            seed = profile.default_template
            return TemplateChoice(
                name=seed.name,
                content=seed.content,
                specificity_level=seed.specificity_level,
                score=score_template(1.0, seed.trigger_factors, potential.tokens()),
                is_default=True,
            )

        tokens = potential.tokens()
        best = candidates[0]
        best_score = score_template(best.confidence_multiplier, best.trigger_factors or [], tokens)
        for template in candidates[1:]:
            score = score_template(template.confidence_multiplier, template.trigger_factors or [], tokens)
            if score > best_score:
                best = template
                best_score = score

        await session.execute(
            update(PredictionTemplate)
            .where(PredictionTemplate.id == best.id)
            .values(usage_count=PredictionTemplate.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        return TemplateChoice(
            template_id=best.id,
            name=best.template_name,
            content=best.template_content,
            confidence_multiplier=best.confidence_multiplier,
            specificity_level=best.specificity_level,
            score=best_score,
        )

    def render(self, choice: TemplateChoice, potential: PredictionPotential, timeframe_hours: int) -> RenderedPrediction:
        profile = profile_for(potential.category)
        aspect_factor = _lead_factor(potential, "planetary_aspect")
        house_factor = _lead_factor(potential, "house_activation")

        lead = aspect_factor or house_factor
        planet = lead.planet if lead is not None and lead.planet else profile.planets[0]
        house = house_factor.house if house_factor else profile.houses[0]
        variables = _Variables(
            timeframe=_describe_timeframe(timeframe_hours),
            planet=planet.replace("_", " ").title(),
            aspect=aspect_factor.aspect if aspect_factor and aspect_factor.aspect else profile.aspects[0],
            house=house_name(house),
            context=profile.context,
            category=profile.category.value,
        )
        text = string.Formatter().vformat(choice.content, (), variables).strip()

        peak = peak_hours(potential.factors, timeframe_hours)
        sentences = [text]
        if peak is not None:
            sentences.append(f"This energy will be strongest around {peak} hours from now.")
        if potential.confidence > HIGH_CONFIDENCE:
            sentences.append(HIGH_CONFIDENCE_NOTE)
        elif potential.confidence < LOW_CONFIDENCE:
            sentences.append(LOW_CONFIDENCE_NOTE)
        rendered = " ".join(sentences)

        names_planet = any(p.title() in rendered for p in profile.planets)
        names_area = any(house_name(h) in rendered for h in range(1, 13)) or profile.context in rendered
        specificity = SPECIFICITY_BASE.get(choice.specificity_level, 0.5)
        specificity += 0.2 if names_planet else 0.0
        specificity += 0.2 if names_area else 0.0
        specificity += 0.1 if peak is not None else 0.0

        return RenderedPrediction(text=rendered, specificity=round(min(specificity, 1.0), 2), peak_hours=peak)
