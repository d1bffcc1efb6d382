"""Tests for prediction potential scoring."""

import pytest
from ephemeris.aspects import AspectAnalyzer
from ephemeris.lunar import calculate_lunar_phase
from verity.categories import CATEGORY_PROFILES, Category, profile_for
from verity.services.potential import BASELINE_NOTE, PredictionPotentialAnalyzer, lunar_boost


def test_every_category_has_a_profile():
    assert set(CATEGORY_PROFILES) == set(Category)
    assert profile_for("career").category is Category.CAREER


def test_unknown_category_raises():
    with pytest.raises(ValueError):
        profile_for("astrology_for_pets")


def test_no_factors_falls_back_to_baseline(make_snapshot, make_chart):
    potential = PredictionPotentialAnalyzer().analyze(Category.LOVE, make_snapshot(), make_chart(), [])
    assert potential.confidence == 0.3
    assert potential.baseline is True
    assert potential.reasoning[-1] == BASELINE_NOTE
    assert potential.factors[-1].kind == "baseline"


def test_house_activation_adds_bonus(make_snapshot, make_chart, make_position):
    # Jupiter at 280 sits in the 10th sign-house
    transits = make_snapshot({"jupiter": make_position("jupiter", 280.0, 0.08)})
    potential = PredictionPotentialAnalyzer().analyze(Category.CAREER, transits, make_chart(), [])
    # 0.2 house bonus + 0.8 * 0.3 base
    assert potential.confidence == 0.44
    assert potential.baseline is False
    assert potential.factors[0].kind == "house_activation"
    assert potential.factors[0].house == 10
    assert "Career/Reputation" in potential.reasoning[0]


def test_favourable_aspects_scale_with_strength(make_snapshot, make_chart, make_position):
    transits = {"venus": make_position("venus", 240.0)}
    natal = {"moon": make_position("moon", 0.0)}
    aspects = AspectAnalyzer().transit_aspects(transits, natal)
    potential = PredictionPotentialAnalyzer().analyze(
        Category.LOVE, make_snapshot(transits), make_chart(natal), aspects
    )
    # Exact trine: 1.0 * 0.3 + 0.7 * 0.3 base
    assert potential.confidence == 0.51
    factor = next(f for f in potential.factors if f.kind == "planetary_aspect")
    assert factor.planet == "venus"
    assert factor.natal_body == "moon"
    assert factor.aspect == "trine"
    assert "Transiting Venus forms a trine to your natal Moon" in potential.reasoning[0]


def test_unfavourable_aspect_ignored(make_snapshot, make_chart, make_position):
    transits = {"venus": make_position("venus", 90.0)}
    natal = {"moon": make_position("moon", 0.0)}
    aspects = AspectAnalyzer().transit_aspects(transits, natal)
    assert aspects[0].aspect_type == "square"
    potential = PredictionPotentialAnalyzer().analyze(
        Category.LOVE, make_snapshot(transits), make_chart(natal), aspects
    )
    assert not [f for f in potential.factors if f.kind == "planetary_aspect"]


def test_lunar_boost_for_favoured_phase(make_snapshot, make_chart):
    full_moon = calculate_lunar_phase(0.0, 180.0)
    profile = profile_for(Category.LOVE)
    assert lunar_boost(profile, full_moon) == pytest.approx(0.18)
    assert lunar_boost(profile_for(Category.CAREER), full_moon) == 0.0
    assert lunar_boost(profile, None) == 0.0

    potential = PredictionPotentialAnalyzer().analyze(
        Category.LOVE, make_snapshot(lunar_phase=full_moon), make_chart(), []
    )
    assert potential.confidence == 0.39
    assert potential.lunar_phase.slug == "full_moon"
    assert "The Full Moon enhances love manifestation" in potential.reasoning


def test_confidence_capped_at_maximum(make_snapshot, make_chart, make_position):
    transits = {
        "sun": make_position("sun", 280.0),
        "mercury": make_position("mercury", 290.0, house=6),
        "jupiter": make_position("jupiter", 40.0, house=2),
        "saturn": make_position("saturn", 275.0),
    }
    natal = {"moon": make_position("moon", 280.0), "venus": make_position("venus", 40.0)}
    aspects = AspectAnalyzer().transit_aspects(transits, natal)
    potential = PredictionPotentialAnalyzer(max_confidence=0.95).analyze(
        Category.CAREER, make_snapshot(transits), make_chart(natal), aspects
    )
    assert potential.confidence == 0.95


def test_min_above_max_rejected():
    with pytest.raises(ValueError):
        PredictionPotentialAnalyzer(min_confidence=0.9, max_confidence=0.5)
