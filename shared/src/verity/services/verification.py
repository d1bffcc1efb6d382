"""Verification of predictions, expiry sweeps, and template feedback loops."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import Float, case, cast, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from verity.errors import AlreadyVerified
from verity.models.feedback import PredictionFeedback
from verity.models.prediction import (
    ACCURATE_STATUSES,
    EXPIRED,
    PARTIALLY_ACCURATE,
    PENDING,
    USER_CONFIRMED,
    USER_DENIED,
    VERIFIED,
    Prediction,
)
from verity.models.template import MAX_CONFIDENCE_MULTIPLIER, MIN_CONFIDENCE_MULTIPLIER, PredictionTemplate
from verity.schemas.predictions import (
    FeedbackType,
    LearningOutcome,
    LearningSample,
    SweepResult,
    VerificationRequest,
    VerificationResult,
)
from verity.services.analytics import record_correlation, record_resolved, status_flag
from verity.services.learning import BatchLearner
from verity.services.prediction_store import PredictionStore

logger = logging.getLogger(__name__)


def determine_status(feedback_type: FeedbackType | str | None, accuracy_rating: int | None) -> str:
    """Map user feedback to a terminal verification status.

    Rules are checked in order, so an explicit "accurate" wins over a low
    rating. Feedback that matches no rule counts as a plain confirmation.
    """
    kind = FeedbackType(feedback_type) if feedback_type is not None else None
    if kind is FeedbackType.ACCURATE or (accuracy_rating is not None and accuracy_rating >= 4):
        return VERIFIED
    if kind is FeedbackType.PARTIALLY_ACCURATE or accuracy_rating == 3:
        return PARTIALLY_ACCURATE
    if kind is FeedbackType.INACCURATE or (accuracy_rating is not None and accuracy_rating <= 2):
        return USER_DENIED
    return USER_CONFIRMED


def _clamped_multiplier(delta: float):
    raw = PredictionTemplate.confidence_multiplier + delta
    return case(
        (raw < MIN_CONFIDENCE_MULTIPLIER, MIN_CONFIDENCE_MULTIPLIER),
        (raw > MAX_CONFIDENCE_MULTIPLIER, MAX_CONFIDENCE_MULTIPLIER),
        else_=raw,
    )


class VerificationEngine:
    """Moves predictions out of ``pending`` and feeds the outcomes back.

    Every status change is a conditional update on ``pending``; the caller
    that loses a race sees zero affected rows and gets ``AlreadyVerified``.
    """

    def __init__(
        self,
        store: PredictionStore,
        learner: BatchLearner,
        *,
        expiry_grace_hours: int = 24,
        expiry_penalty: float = 0.01,
        sweep_batch_size: int = 50,
    ) -> None:
        self.store = store
        self.learner = learner
        self.expiry_grace_hours = expiry_grace_hours
        self.expiry_penalty = expiry_penalty
        self.sweep_batch_size = sweep_batch_size

    async def _transition(
        self,
        session: AsyncSession,
        prediction_id: uuid.UUID,
        status: str,
        now: datetime,
        actual_outcome: str | None = None,
    ) -> bool:
        values: dict = {"verification_status": status}
        if status != EXPIRED:
            values["verified_at"] = now
            values["actual_outcome"] = actual_outcome
        result = await session.execute(
            update(Prediction)
            .where(Prediction.id == prediction_id, Prediction.verification_status == PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def verify(
        self,
        session: AsyncSession,
        prediction_id: uuid.UUID,
        user_id: str,
        request: VerificationRequest,
        now: datetime,
    ) -> VerificationResult:
        prediction = await self.store.get(session, prediction_id, user_id)
        if prediction.verification_status != PENDING:
            raise AlreadyVerified(f"prediction {prediction_id} is already {prediction.verification_status}")

        status = determine_status(request.feedback_type, request.accuracy_rating)
        if not await self._transition(session, prediction.id, status, now, request.actual_outcome):
            raise AlreadyVerified(f"prediction {prediction_id} was verified concurrently")
        await session.refresh(prediction)

        feedback = PredictionFeedback(
            id=uuid.uuid4(),
            prediction_id=prediction.id,
            user_id=user_id,
            accuracy_rating=request.accuracy_rating,
            feedback_type=request.feedback_type.value if request.feedback_type else None,
            outcome_description=request.actual_outcome,
            helpful_rating=request.helpful_rating,
            accepted=True,
            submitted_at=now,
        )
        session.add(feedback)
        await session.flush()

        rated = request.accuracy_rating is not None or request.feedback_type is not None
        await record_resolved(
            session,
            user_id,
            prediction.category,
            accurate=status in ACCURATE_STATUSES,
            expired=False,
            accuracy=request.accuracy_score() if rated else None,
            now=now,
        )
        await self.refresh_template_success(session, prediction.template_id, now)
        await self.store.cancel_alerts(session, prediction.id)

        learning_applied = False
        if rated:
            outcome = await self.learner.observe(
                LearningSample(
                    prediction_id=prediction.id,
                    category=prediction.category,
                    confidence=prediction.confidence_score,
                    accuracy=request.accuracy_score(),
                    template_id=prediction.template_id,
                    recorded_at=now,
                )
            )
            if outcome is not None:
                await self.apply_learning(session, outcome, now)
                learning_applied = True

        analytics = await self.store.user_analytics(session, user_id)
        logger.info("Prediction %s verified as %s by %s", prediction.id, status, user_id)
        return VerificationResult(
            prediction_id=prediction.id,
            status=status,
            feedback_id=feedback.id,
            user_success_rate=analytics.success_rate,
            learning_applied=learning_applied,
        )

    async def add_feedback(
        self,
        session: AsyncSession,
        prediction_id: uuid.UUID,
        user_id: str,
        request: VerificationRequest,
        now: datetime,
    ) -> PredictionFeedback:
        """Store extra feedback without changing the prediction's status."""
        prediction = await self.store.get(session, prediction_id, user_id)
        feedback = PredictionFeedback(
            id=uuid.uuid4(),
            prediction_id=prediction.id,
            user_id=user_id,
            accuracy_rating=request.accuracy_rating,
            feedback_type=request.feedback_type.value if request.feedback_type else None,
            outcome_description=request.actual_outcome,
            helpful_rating=request.helpful_rating,
            accepted=False,
            submitted_at=now,
        )
        session.add(feedback)
        await session.flush()
        return feedback

    async def refresh_template_success(
        self,
        session: AsyncSession,
        template_id: int | None,
        now: datetime,
    ) -> None:
        """Recompute a template's success rate from its resolved predictions."""
        if template_id is None:
            return
        resolved = func.count(Prediction.id)
        accurate = func.coalesce(func.sum(status_flag(Prediction.verification_status, ACCURATE_STATUSES)), 0)
        rate = (
            select(case((resolved == 0, 0.0), else_=cast(accurate, Float) / resolved))
            .where(Prediction.template_id == template_id, Prediction.verification_status != PENDING)
            .scalar_subquery()
        )
        await session.execute(
            update(PredictionTemplate)
            .where(PredictionTemplate.id == template_id)
            .values(success_rate=rate, updated_at=now)
            .execution_options(synchronize_session=False)
        )

    async def nudge_category(self, session: AsyncSession, category: str, delta: float, now: datetime) -> int:
        """Shift every template multiplier in a category, clamped to its bounds."""
        result = await session.execute(
            update(PredictionTemplate)
            .where(PredictionTemplate.category == category)
            .values(confidence_multiplier=_clamped_multiplier(delta), updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def apply_learning(self, session: AsyncSession, outcome: LearningOutcome, now: datetime) -> None:
        await self.nudge_category(session, outcome.category.value, outcome.adjustment, now)
        await record_correlation(session, outcome.category.value, outcome.correlation, now)

    async def expire_one(self, session: AsyncSession, prediction_id: uuid.UUID, now: datetime) -> bool:
        """Expire a single pending prediction; False if it was no longer pending."""
        result = await session.execute(select(Prediction).where(Prediction.id == prediction_id))
        prediction = result.scalars().first()
        if prediction is None:
            return False
        if not await self._transition(session, prediction.id, EXPIRED, now):
            return False

        await self.nudge_category(session, prediction.category, -self.expiry_penalty, now)
        await record_resolved(
            session,
            prediction.user_id,
            prediction.category,
            accurate=False,
            expired=True,
            accuracy=None,
            now=now,
        )
        await self.refresh_template_success(session, prediction.template_id, now)
        await self.store.cancel_alerts(session, prediction.id)
        return True

    async def sweep_expired(
        self,
        session_factory: Callable[[], AsyncSession],
        now: datetime,
    ) -> SweepResult:
        """Expire every prediction still pending past the grace period.

        Each prediction is expired in its own transaction. A failure is
        logged and skipped so one bad row cannot block the rest.
        """
        cutoff = now - timedelta(hours=self.expiry_grace_hours)
        processed = 0
        failed: list[uuid.UUID] = []

        while True:
            stmt = select(Prediction.id).where(
                Prediction.verification_status == PENDING,
                Prediction.expires_at < cutoff,
            )
            if failed:
                stmt = stmt.where(Prediction.id.not_in(failed))
            stmt = stmt.order_by(Prediction.expires_at, Prediction.id).limit(self.sweep_batch_size)
            async with session_factory() as session:
                ids = list((await session.execute(stmt)).scalars().all())
            if not ids:
                break

            for prediction_id in ids:
                try:
                    async with session_factory() as session:
                        async with session.begin():
                            if await self.expire_one(session, prediction_id, now):
                                processed += 1
                except Exception:
                    logger.exception("Failed to expire prediction %s", prediction_id)
                    failed.append(prediction_id)

        if processed or failed:
            logger.info("Expiry sweep: %d expired, %d failed", processed, len(failed))
        return SweepResult(processed_count=processed, failed_count=len(failed), failed_ids=failed)
