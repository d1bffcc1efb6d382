"""Tests for prediction persistence, alert schedules, and analytics."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from verity.categories import Category
from verity.errors import PredictionLimitExceeded, PredictionNotFound
from verity.models.analytics import PredictionAnalytics
from verity.models.category import PredictionCategory
from verity.models.feedback import PredictionFeedback
from verity.models.generation_log import PredictionGenerationLog
from verity.schemas.predictions import PredictionFilters, PredictionPotential, RenderedPrediction, TemplateChoice
from verity.services.prediction_store import PredictionStore, alert_schedule, reliability_score, success_rate

START = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_alert_schedule_for_two_days():
    slots = alert_schedule(START, 48)
    assert [(s.alert_type, s.offset_hours) for s in slots] == [
        ("48hr_warning", 0),
        ("24hr_warning", 24),
        ("2hr_warning", 46),
        ("verification_reminder", 72),
    ]
    assert slots[-1].alert_at == START + timedelta(hours=72)


def test_short_timeframe_drops_early_warnings():
    slots = alert_schedule(START, 12)
    assert [s.alert_type for s in slots] == ["2hr_warning", "verification_reminder"]


def test_success_rate_percentage():
    assert success_rate(0, 0) == 0.0
    assert success_rate(2, 3) == 66.67


async def _save(store, session, user_id="user-1", confidence=0.5, category=Category.CAREER, now=START):
    potential = PredictionPotential(category=category, confidence=confidence, reasoning=["because"])
    prediction, slots = await store.save(
        session,
        user_id=user_id,
        potential=potential,
        rendered=RenderedPrediction(text="Something happens.", specificity=0.5),
        choice=TemplateChoice(name="default_career", content="x", is_default=True),
        timeframe_hours=48,
        now=now,
    )
    await session.commit()
    return prediction, slots


async def test_save_and_get(session):
    store = PredictionStore()
    prediction, slots = await _save(store, session)

    loaded = await store.get(session, prediction.id, "user-1")
    assert loaded.verification_status == "pending"
    assert loaded.expires_at == START + timedelta(hours=48)
    assert loaded.reasoning == ["because"]
    assert len(slots) == 4

    with pytest.raises(PredictionNotFound):
        await store.get(session, prediction.id, "someone-else")


async def test_capacity_counts_only_unexpired_pending(session):
    store = PredictionStore(max_pending=2)
    await _save(store, session)
    await _save(store, session)

    with pytest.raises(PredictionLimitExceeded):
        await store.ensure_capacity(session, "user-1", START)
    await store.ensure_capacity(session, "user-2", START)
    # Both expire after 48h and stop counting
    await store.ensure_capacity(session, "user-1", START + timedelta(hours=49))


async def test_save_updates_analytics(session):
    store = PredictionStore()
    await _save(store, session, confidence=0.4)
    await _save(store, session, confidence=0.6)

    row = (await session.execute(select(PredictionAnalytics))).scalars().one()
    assert row.total_predictions == 2
    assert row.average_confidence == pytest.approx(0.5)
    assert row.activity_date == START.date()

    category = await session.get(PredictionCategory, "career")
    assert category.total_predictions == 2


async def test_list_filters_and_hours_remaining(session):
    store = PredictionStore()
    first, _ = await _save(store, session)
    await _save(store, session, category=Category.LOVE, now=START + timedelta(hours=1))

    everything = await store.list_for_user(session, "user-1", now=START + timedelta(hours=2))
    assert len(everything) == 2
    assert everything[-1].prediction_id == first.id
    assert everything[-1].hours_remaining == 46.0

    love = await store.list_for_user(session, "user-1", PredictionFilters(category=Category.LOVE))
    assert [p.category for p in love] == ["love"]

    active = await store.list_for_user(
        session, "user-1", PredictionFilters(active_only=True), now=START + timedelta(hours=48, minutes=30)
    )
    assert [p.category for p in active] == ["love"]


async def test_user_analytics_empty(session):
    analytics = await PredictionStore().user_analytics(session, "nobody")
    assert analytics.total_predictions == 0
    assert analytics.success_rate == 0.0


def test_reliability_score():
    # Too little feedback to judge
    assert reliability_score(4, 5.0, 0) == 0.5
    assert reliability_score(5, 5.0, 0) == 1.0
    # Missing helpful ratings count as neutral 3/5
    assert reliability_score(10, None, 5) == 0.57


async def test_user_analytics_feedback_breakdown(session):
    store = PredictionStore()
    first, _ = await _save(store, session, confidence=0.4)
    second, _ = await _save(store, session, confidence=0.8)
    other, _ = await _save(store, session, user_id="user-2")
    for prediction, rating, helpful, kind in [
        (first, 4, 5, "accurate"),
        (second, 2, 3, "could_not_verify"),
        (other, 1, 1, "inaccurate"),
    ]:
        session.add(
            PredictionFeedback(
                prediction_id=prediction.id,
                user_id=prediction.user_id,
                accuracy_rating=rating,
                helpful_rating=helpful,
                feedback_type=kind,
                accepted=False,
                submitted_at=START,
            )
        )
    await session.commit()

    analytics = await store.user_analytics(session, "user-1")
    assert analytics.status_counts == {"pending": 2}
    assert analytics.avg_confidence == 0.6
    assert analytics.avg_accurate_confidence == 0.0
    assert analytics.feedback.total_feedback == 2
    assert analytics.feedback.avg_accuracy_rating == 3.0
    assert analytics.feedback.avg_helpful_rating == 4.0
    assert analytics.feedback.type_counts == {"accurate": 1, "could_not_verify": 1}
    assert analytics.reliability_score == 0.5


async def test_due_alerts_and_mark_sent(session):
    store = PredictionStore()
    await _save(store, session)

    due = await store.due_alerts(session, START)
    assert [a.alert_type for a in due] == ["48hr_warning"]

    assert await store.mark_alert_sent(session, due[0].id, START) is True
    assert await store.mark_alert_sent(session, due[0].id, START) is False
    await session.commit()
    assert await store.due_alerts(session, START) == []

    later = await store.due_alerts(session, START + timedelta(hours=30))
    assert [a.alert_type for a in later] == ["24hr_warning"]


async def test_generation_log(session):
    store = PredictionStore()
    prediction, _ = await _save(store, session)
    await store.log_generation(
        session,
        user_id="user-1",
        category="career",
        trigger="api_request",
        now=START,
        prediction=prediction,
    )
    await session.commit()
    row = (await session.execute(select(PredictionGenerationLog))).scalars().one()
    assert row.success is True
    assert row.prediction_id == prediction.id
    assert row.confidence_score == 0.5
