"""Prediction model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Float, ForeignKey, Index, Integer, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from verity.models.base import Base, JSONType, UTCDateTime

if TYPE_CHECKING:
    from verity.models.alert import PredictionAlert
    from verity.models.feedback import PredictionFeedback

PENDING = "pending"
VERIFIED = "verified"
PARTIALLY_ACCURATE = "partially_accurate"
USER_CONFIRMED = "user_confirmed"
USER_DENIED = "user_denied"
EXPIRED = "expired"

VERIFICATION_STATUSES = (PENDING, VERIFIED, PARTIALLY_ACCURATE, USER_CONFIRMED, USER_DENIED, EXPIRED)
TERMINAL_STATUSES = VERIFICATION_STATUSES[1:]
# Outcomes that count toward success rates
ACCURATE_STATUSES = (VERIFIED, USER_CONFIRMED)


class Prediction(Base):
    __tablename__ = "predictions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    content_text: Mapped[str] = mapped_column(Text, nullable=False)
    astrological_basis: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    reasoning: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    specificity_score: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0.5"))
    timeframe_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    template_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("prediction_templates.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    verification_status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'pending'"), default=PENDING
    )
    actual_outcome: Mapped[str | None] = mapped_column(Text)
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Relationships
    feedback: Mapped[list[PredictionFeedback]] = relationship(
        back_populates="prediction", cascade="all, delete-orphan", lazy="raise"
    )
    alerts: Mapped[list[PredictionAlert]] = relationship(
        back_populates="prediction", cascade="all, delete-orphan", lazy="raise"
    )

    __table_args__ = (
        CheckConstraint(
            "verification_status IN ('pending','verified','partially_accurate',"
            "'user_confirmed','user_denied','expired')",
            name="ck_prediction_verification_status",
        ),
        CheckConstraint("confidence_score BETWEEN 0 AND 1", name="ck_prediction_confidence"),
        CheckConstraint("timeframe_hours > 0", name="ck_prediction_timeframe"),
        Index("idx_predictions_user_status", "user_id", "verification_status"),
        Index("idx_predictions_status_expires", "verification_status", "expires_at"),
        Index("idx_predictions_template", "template_id"),
    )
