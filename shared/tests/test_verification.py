"""Tests for verification, template feedback, and expiry sweeps."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select
from verity.categories import Category
from verity.errors import AlreadyVerified, PredictionNotFound
from verity.models.alert import PredictionAlert
from verity.models.feedback import PredictionFeedback
from verity.models.prediction import Prediction
from verity.models.template import PredictionTemplate
from verity.schemas.predictions import (
    FeedbackType,
    LearningOutcome,
    PredictionPotential,
    RenderedPrediction,
    TemplateChoice,
    VerificationRequest,
)
from verity.seeds import seed_defaults
from verity.services.learning import BatchLearner, InMemoryLearningBuffer
from verity.services.prediction_store import PredictionStore
from verity.services.verification import VerificationEngine, determine_status

START = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("feedback_type", "rating", "status"),
    [
        (FeedbackType.ACCURATE, 1, "verified"),
        (None, 4, "verified"),
        (FeedbackType.PARTIALLY_ACCURATE, None, "partially_accurate"),
        (None, 3, "partially_accurate"),
        (FeedbackType.INACCURATE, None, "user_denied"),
        (None, 2, "user_denied"),
        (FeedbackType.TOO_VAGUE, None, "user_confirmed"),
        (None, None, "user_confirmed"),
    ],
)
def test_determine_status(feedback_type, rating, status):
    assert determine_status(feedback_type, rating) == status


@pytest.fixture
def store():
    return PredictionStore()


@pytest.fixture
def engine_under_test(store):
    return VerificationEngine(store, BatchLearner(InMemoryLearningBuffer(), min_samples=2))


async def _template_id(session, category="career"):
    result = await session.execute(
        select(PredictionTemplate.id).where(PredictionTemplate.category == category).order_by(PredictionTemplate.id)
    )
    return result.scalars().first()


async def _save(store, session, template_id=None, now=START, user_id="user-1", confidence=0.6):
    prediction, _ = await store.save(
        session,
        user_id=user_id,
        potential=PredictionPotential(category=Category.CAREER, confidence=confidence),
        rendered=RenderedPrediction(text="A door opens.", specificity=0.5),
        choice=TemplateChoice(template_id=template_id, name="t", content="x"),
        timeframe_hours=48,
        now=now,
    )
    await session.commit()
    return prediction


async def _multipliers(session, category="career"):
    result = await session.execute(
        select(PredictionTemplate.confidence_multiplier).where(PredictionTemplate.category == category)
    )
    return list(result.scalars().all())


async def test_verify_marks_prediction_and_cancels_alerts(session, store, engine_under_test):
    await seed_defaults(session)
    template_id = await _template_id(session)
    prediction = await _save(store, session, template_id)

    result = await engine_under_test.verify(
        session,
        prediction.id,
        "user-1",
        VerificationRequest(feedback_type=FeedbackType.ACCURATE, accuracy_rating=5, actual_outcome="Got the call"),
        START + timedelta(hours=5),
    )
    await session.commit()

    assert result.status == "verified"
    assert result.user_success_rate == 100.0
    assert result.learning_applied is False

    loaded = await store.get(session, prediction.id)
    assert loaded.verification_status == "verified"
    assert loaded.verified_at == START + timedelta(hours=5)
    assert loaded.actual_outcome == "Got the call"

    feedback = (await session.execute(select(PredictionFeedback))).scalars().one()
    assert feedback.accepted is True
    assert feedback.accuracy_rating == 5

    statuses = (
        await session.execute(select(PredictionAlert.status).where(PredictionAlert.prediction_id == prediction.id))
    ).scalars().all()
    assert set(statuses) == {"cancelled"}

    template = await session.get(PredictionTemplate, template_id)
    await session.refresh(template)
    assert template.success_rate == 1.0


async def test_verify_twice_raises(session, store, engine_under_test):
    prediction = await _save(store, session)
    request = VerificationRequest(accuracy_rating=2)
    await engine_under_test.verify(session, prediction.id, "user-1", request, START)
    await session.commit()

    with pytest.raises(AlreadyVerified):
        await engine_under_test.verify(session, prediction.id, "user-1", request, START)


async def test_verify_other_users_prediction_not_found(session, store, engine_under_test):
    prediction = await _save(store, session)
    with pytest.raises(PredictionNotFound):
        await engine_under_test.verify(session, prediction.id, "intruder", VerificationRequest(accuracy_rating=5), START)


async def test_add_feedback_keeps_status(session, store, engine_under_test):
    prediction = await _save(store, session)
    feedback = await engine_under_test.add_feedback(
        session, prediction.id, "user-1", VerificationRequest(helpful_rating=4), START
    )
    await session.commit()
    assert feedback.accepted is False
    loaded = await store.get(session, prediction.id)
    assert loaded.verification_status == "pending"


async def test_learning_batch_nudges_category(session, store, engine_under_test):
    await seed_defaults(session)
    await session.commit()
    first = await _save(store, session, confidence=0.8)
    second = await _save(store, session, confidence=0.4)

    request = VerificationRequest(accuracy_rating=5)
    result = await engine_under_test.verify(session, first.id, "user-1", request, START)
    assert result.learning_applied is False
    result = await engine_under_test.verify(session, second.id, "user-1", request, START)
    assert result.learning_applied is True
    await session.commit()

    assert all(m == pytest.approx(1.05) for m in await _multipliers(session))
    assert all(m == pytest.approx(1.0) for m in await _multipliers(session, "love"))


async def test_nudge_is_clamped(session, engine_under_test):
    await seed_defaults(session)
    await session.commit()
    templates = (
        await session.execute(select(PredictionTemplate).where(PredictionTemplate.category == "career"))
    ).scalars().all()
    templates[0].confidence_multiplier = 0.105
    templates[1].confidence_multiplier = 1.98
    await session.commit()

    await engine_under_test.nudge_category(session, "career", 0.05, START)
    await session.commit()
    await session.refresh(templates[1])
    assert templates[1].confidence_multiplier == pytest.approx(2.0)

    await engine_under_test.nudge_category(session, "career", -0.1, START)
    await session.commit()
    await session.refresh(templates[0])
    assert templates[0].confidence_multiplier == pytest.approx(0.1)

    outcome = LearningOutcome(
        category=Category.CAREER, sample_count=10, average_accuracy=1.0, correlation=-0.2, adjustment=-5.0
    )
    await engine_under_test.apply_learning(session, outcome, START)
    await session.commit()
    for t in templates:
        await session.refresh(t)
    assert all(t.confidence_multiplier == pytest.approx(0.1) for t in templates)


async def test_sweep_expires_overdue_only_once(session, session_factory, store, engine_under_test):
    await seed_defaults(session)
    await session.commit()
    overdue = await _save(store, session, now=START - timedelta(days=4))
    fresh = await _save(store, session, now=START)

    result = await engine_under_test.sweep_expired(session_factory, START)
    assert result.processed_count == 1
    assert result.failed_count == 0

    again = await engine_under_test.sweep_expired(session_factory, START)
    assert again.processed_count == 0

    async with session_factory() as check:
        expired = await check.get(Prediction, overdue.id)
        assert expired.verification_status == "expired"
        assert expired.verified_at is None
        untouched = await check.get(Prediction, fresh.id)
        assert untouched.verification_status == "pending"
        multipliers = await _multipliers(check)
    assert all(m == pytest.approx(0.99) for m in multipliers)


async def test_prediction_25_hours_past_expiry_is_swept(session, session_factory, store, engine_under_test):
    await seed_defaults(session)
    await session.commit()
    # 48 hour window that closed 25 hours ago
    prediction = await _save(store, session, now=START - timedelta(hours=48 + 25))

    result = await engine_under_test.sweep_expired(session_factory, START)
    assert result.processed_count == 1

    async with session_factory() as check:
        assert (await check.get(Prediction, prediction.id)).verification_status == "expired"
        multipliers = await _multipliers(check)
    assert all(m == pytest.approx(0.99) for m in multipliers)


async def test_sweep_within_grace_period_leaves_pending(session, session_factory, store, engine_under_test):
    # Expired 12 hours ago, still inside the 24 hour grace period
    await _save(store, session, now=START - timedelta(hours=60))
    result = await engine_under_test.sweep_expired(session_factory, START)
    assert result.processed_count == 0


async def test_sweep_failure_is_skipped(session, session_factory, store, engine_under_test):
    broken = await _save(store, session, now=START - timedelta(days=5))
    ok = await _save(store, session, now=START - timedelta(days=4))

    original = engine_under_test.expire_one

    async def flaky(s, prediction_id, now):
        if prediction_id == broken.id:
            raise RuntimeError("database hiccup")
        return await original(s, prediction_id, now)

    with patch.object(engine_under_test, "expire_one", side_effect=flaky):
        result = await engine_under_test.sweep_expired(session_factory, START)

    assert result.processed_count == 1
    assert result.failed_ids == [broken.id]
    async with session_factory() as check:
        assert (await check.get(Prediction, ok.id)).verification_status == "expired"
        assert (await check.get(Prediction, broken.id)).verification_status == "pending"
