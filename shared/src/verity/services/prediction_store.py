"""Persistence of predictions, their alert schedules, and generation logs."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from verity.errors import PredictionError, PredictionLimitExceeded, PredictionNotFound
from verity.models.alert import PredictionAlert
from verity.models.category import PredictionCategory
from verity.models.feedback import PredictionFeedback
from verity.models.generation_log import PredictionGenerationLog
from verity.models.prediction import ACCURATE_STATUSES, PENDING, Prediction
from verity.models.template import PredictionTemplate
from verity.schemas.predictions import (
    AlertSlot,
    CategoryStats,
    FeedbackBreakdown,
    FeedbackType,
    PredictionFilters,
    PredictionPotential,
    PredictionSummary,
    RenderedPrediction,
    SystemStats,
    TemplateChoice,
    TemplateStats,
    UserAnalytics,
)
from verity.services.analytics import record_generated, status_flag

logger = logging.getLogger(__name__)

# (alert type, hours before expiry); reminders that would fall before creation are dropped
WARNING_OFFSETS: list[tuple[str, int]] = [
    ("48hr_warning", 48),
    ("24hr_warning", 24),
    ("2hr_warning", 2),
]
VERIFICATION_REMINDER = "verification_reminder"
VERIFICATION_REMINDER_DELAY_HOURS = 24
MIN_FEEDBACK_FOR_RELIABILITY = 5


def alert_schedule(created_at: datetime, timeframe_hours: int) -> list[AlertSlot]:
    """Alert times for a prediction, ordered by offset from creation."""
    slots: list[AlertSlot] = []
    for alert_type, hours_before in WARNING_OFFSETS:
        offset = timeframe_hours - hours_before
        if offset < 0:
            continue
        slots.append(
            AlertSlot(alert_type=alert_type, offset_hours=offset, alert_at=created_at + timedelta(hours=offset))
        )
    reminder_offset = timeframe_hours + VERIFICATION_REMINDER_DELAY_HOURS
    slots.append(
        AlertSlot(
            alert_type=VERIFICATION_REMINDER,
            offset_hours=reminder_offset,
            alert_at=created_at + timedelta(hours=reminder_offset),
        )
    )
    return slots


def to_summary(prediction: Prediction, now: datetime | None = None) -> PredictionSummary:
    hours_remaining = None
    if now is not None and prediction.verification_status == PENDING:
        hours_remaining = round(max((prediction.expires_at - now).total_seconds() / 3600.0, 0.0), 2)
    return PredictionSummary(
        prediction_id=prediction.id,
        category=prediction.category,
        content=prediction.content_text,
        confidence=prediction.confidence_score,
        timeframe_hours=prediction.timeframe_hours,
        verification_status=prediction.verification_status,
        created_at=prediction.created_at,
        expires_at=prediction.expires_at,
        verified_at=prediction.verified_at,
        hours_remaining=hours_remaining,
        reasoning=list(prediction.reasoning or []),
    )


class PredictionStore:
    """Writes and reads predictions inside a caller-owned session."""

    def __init__(self, max_pending: int = 3) -> None:
        self.max_pending = max_pending

    async def count_pending(self, session: AsyncSession, user_id: str, now: datetime) -> int:
        result = await session.execute(
            select(func.count())
            .select_from(Prediction)
            .where(
                Prediction.user_id == user_id,
                Prediction.verification_status == PENDING,
                Prediction.expires_at > now,
            )
        )
        return int(result.scalar() or 0)

    async def ensure_capacity(self, session: AsyncSession, user_id: str, now: datetime) -> None:
        pending = await self.count_pending(session, user_id, now)
        if pending >= self.max_pending:
            raise PredictionLimitExceeded(
                f"user already has {pending} active predictions (limit {self.max_pending})"
            )

    async def save(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        potential: PredictionPotential,
        rendered: RenderedPrediction,
        choice: TemplateChoice,
        timeframe_hours: int,
        now: datetime,
    ) -> tuple[Prediction, list[AlertSlot]]:
        """Insert a pending prediction with its alert rows and analytics."""
        prediction = Prediction(
            id=uuid.uuid4(),
            user_id=user_id,
            category=potential.category.value,
            confidence_score=potential.confidence,
            content_text=rendered.text,
            astrological_basis=[f.model_dump(exclude_none=True) for f in potential.factors],
            reasoning=list(potential.reasoning),
            specificity_score=rendered.specificity,
            timeframe_hours=timeframe_hours,
            template_id=choice.template_id,
            created_at=now,
            expires_at=now + timedelta(hours=timeframe_hours),
            verification_status=PENDING,
        )
        session.add(prediction)

        slots = alert_schedule(now, timeframe_hours)
        for slot in slots:
            session.add(
                PredictionAlert(
                    prediction_id=prediction.id,
                    alert_type=slot.alert_type,
                    alert_at=slot.alert_at,
                    offset_hours=slot.offset_hours,
                    created_at=now,
                )
            )
        await session.flush()

        await record_generated(session, user_id, potential.category.value, potential.confidence, now)
        return prediction, slots

    async def get(self, session: AsyncSession, prediction_id: uuid.UUID, user_id: str | None = None) -> Prediction:
        stmt = select(Prediction).where(Prediction.id == prediction_id)
        if user_id is not None:
            stmt = stmt.where(Prediction.user_id == user_id)
        result = await session.execute(stmt)
        prediction = result.scalars().first()
        if prediction is None:
            raise PredictionNotFound(f"prediction {prediction_id} not found")
        return prediction

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        filters: PredictionFilters | None = None,
        now: datetime | None = None,
    ) -> list[PredictionSummary]:
        filters = filters or PredictionFilters()
        stmt = select(Prediction).where(Prediction.user_id == user_id)
        if filters.status:
            stmt = stmt.where(Prediction.verification_status == filters.status)
        if filters.category is not None:
            stmt = stmt.where(Prediction.category == filters.category.value)
        if filters.active_only:
            stmt = stmt.where(Prediction.verification_status == PENDING)
            if now is not None:
                stmt = stmt.where(Prediction.expires_at > now)
        stmt = stmt.order_by(Prediction.created_at.desc(), Prediction.id).limit(filters.limit).offset(filters.offset)
        result = await session.execute(stmt)
        return [to_summary(p, now) for p in result.scalars().all()]

    async def user_analytics(self, session: AsyncSession, user_id: str) -> UserAnalytics:
        result = await session.execute(
            select(
                func.count(),
                func.sum(status_flag(Prediction.verification_status, (PENDING,))),
                func.sum(status_flag(Prediction.verification_status, ACCURATE_STATUSES)),
                func.avg(Prediction.confidence_score),
                func.avg(
                    case((Prediction.verification_status.in_(ACCURATE_STATUSES), Prediction.confidence_score))
                ),
                func.count(func.distinct(Prediction.category)),
            ).where(Prediction.user_id == user_id)
        )
        total, pending, accurate, avg_confidence, avg_accurate_confidence, categories = result.one()
        total = int(total or 0)
        pending = int(pending or 0)
        accurate = int(accurate or 0)
        resolved = total - pending

        status_rows = await session.execute(
            select(Prediction.verification_status, func.count())
            .where(Prediction.user_id == user_id)
            .group_by(Prediction.verification_status)
        )
        feedback = await self.feedback_breakdown(session, user_id)
        return UserAnalytics(
            total_predictions=total,
            pending_predictions=pending,
            resolved_predictions=resolved,
            accurate_predictions=accurate,
            success_rate=success_rate(accurate, resolved),
            avg_confidence=round(float(avg_confidence or 0.0), 2),
            avg_accurate_confidence=round(float(avg_accurate_confidence or 0.0), 2),
            categories_used=int(categories or 0),
            status_counts={status: int(count) for status, count in status_rows.all()},
            feedback=feedback,
            reliability_score=reliability_score(
                feedback.total_feedback,
                feedback.avg_helpful_rating or None,
                feedback.type_counts.get(FeedbackType.COULD_NOT_VERIFY.value, 0),
            ),
        )

    async def feedback_breakdown(self, session: AsyncSession, user_id: str) -> FeedbackBreakdown:
        """Ratings and feedback types across all of a user's predictions."""
        own_feedback = (
            select(PredictionFeedback)
            .join(Prediction, PredictionFeedback.prediction_id == Prediction.id)
            .where(Prediction.user_id == user_id)
            .subquery()
        )
        totals = await session.execute(
            select(
                func.count(),
                func.avg(own_feedback.c.accuracy_rating),
                func.avg(own_feedback.c.helpful_rating),
            )
        )
        count, avg_accuracy, avg_helpful = totals.one()
        type_rows = await session.execute(
            select(own_feedback.c.feedback_type, func.count())
            .where(own_feedback.c.feedback_type.is_not(None))
            .group_by(own_feedback.c.feedback_type)
        )
        return FeedbackBreakdown(
            total_feedback=int(count or 0),
            avg_accuracy_rating=round(float(avg_accuracy or 0.0), 2),
            avg_helpful_rating=round(float(avg_helpful or 0.0), 2),
            type_counts={feedback_type: int(n) for feedback_type, n in type_rows.all()},
        )

    async def system_stats(self, session: AsyncSession) -> SystemStats:
        status_rows = await session.execute(
            select(Prediction.verification_status, func.count()).group_by(Prediction.verification_status)
        )
        status_counts = {status: int(count) for status, count in status_rows.all()}

        category_rows = await session.execute(select(PredictionCategory).order_by(PredictionCategory.category_name))
        categories = [
            CategoryStats(
                category=row.category_name,
                total_predictions=row.total_predictions,
                resolved_predictions=row.resolved_predictions,
                accurate_predictions=row.accurate_predictions,
                average_confidence=round(row.average_confidence, 4),
                average_accuracy=round(row.average_accuracy, 4),
                last_confidence_correlation=row.last_confidence_correlation,
            )
            for row in category_rows.scalars().all()
        ]

        template_rows = await session.execute(
            select(PredictionTemplate).order_by(PredictionTemplate.usage_count.desc(), PredictionTemplate.id)
        )
        templates = [
            TemplateStats(
                template_id=t.id,
                category=t.category,
                template_name=t.template_name,
                usage_count=t.usage_count,
                success_rate=t.success_rate,
                confidence_multiplier=t.confidence_multiplier,
            )
            for t in template_rows.scalars().all()
        ]
        return SystemStats(
            total_predictions=sum(status_counts.values()),
            status_counts=status_counts,
            categories=categories,
            templates=templates,
        )

    async def cancel_alerts(self, session: AsyncSession, prediction_id: uuid.UUID) -> int:
        result = await session.execute(
            update(PredictionAlert)
            .where(PredictionAlert.prediction_id == prediction_id, PredictionAlert.status == "scheduled")
            .values(status="cancelled")
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def due_alerts(self, session: AsyncSession, now: datetime, limit: int = 100) -> list[PredictionAlert]:
        """Scheduled alerts whose time has come, oldest first."""
        result = await session.execute(
            select(PredictionAlert)
            .where(PredictionAlert.status == "scheduled", PredictionAlert.alert_at <= now)
            .order_by(PredictionAlert.alert_at, PredictionAlert.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_alert_sent(self, session: AsyncSession, alert_id: uuid.UUID, now: datetime) -> bool:
        result = await session.execute(
            update(PredictionAlert)
            .where(PredictionAlert.id == alert_id, PredictionAlert.status == "scheduled")
            .values(status="sent", sent_at=now)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def log_generation(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        category: str,
        trigger: str,
        now: datetime,
        prediction: Prediction | None = None,
        choice: TemplateChoice | None = None,
        error: PredictionError | Exception | None = None,
    ) -> None:
        session.add(
            PredictionGenerationLog(
                user_id=user_id,
                category=category,
                generation_trigger=trigger,
                prediction_id=prediction.id if prediction is not None else None,
                template_id=choice.template_id if choice is not None else None,
                confidence_score=prediction.confidence_score if prediction is not None else None,
                success=error is None,
                error_code=getattr(error, "code", type(error).__name__) if error is not None else None,
                error_message=str(error) if error is not None else None,
                created_at=now,
            )
        )
        await session.flush()


def success_rate(accurate: int, resolved: int) -> float:
    """Accurate outcomes as a percentage of resolved predictions."""
    if resolved <= 0:
        return 0.0
    return round(accurate / resolved * 100.0, 2)


def reliability_score(total_feedback: int, avg_helpful: float | None, unverifiable: int) -> float:
    """How much weight a user's feedback deserves, from 0 to 1.

    Users with fewer than ``MIN_FEEDBACK_FOR_RELIABILITY`` submissions get
    the neutral 0.5. Otherwise helpfulness counts for 70% and the share of
    feedback that could actually be checked for 30%.
    """
    if total_feedback < MIN_FEEDBACK_FOR_RELIABILITY:
        return 0.5
    helpful = (avg_helpful if avg_helpful is not None else 3.0) / 5.0
    verifiable = 1.0 - unverifiable / total_feedback
    return round(helpful * 0.7 + verifiable * 0.3, 4)
