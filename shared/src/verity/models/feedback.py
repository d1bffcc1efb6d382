"""User feedback on predictions."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from verity.models.base import Base, UTCDateTime

if TYPE_CHECKING:
    from verity.models.prediction import Prediction

FEEDBACK_TYPES = ("accurate", "partially_accurate", "inaccurate", "too_vague", "could_not_verify")


class PredictionFeedback(Base):
    __tablename__ = "prediction_feedback"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    prediction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    accuracy_rating: Mapped[int | None] = mapped_column(Integer)
    feedback_type: Mapped[str | None] = mapped_column(Text)
    outcome_description: Mapped[str | None] = mapped_column(Text)
    helpful_rating: Mapped[int | None] = mapped_column(Integer)
    # True for the submission that moved the prediction out of pending
    accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("FALSE"))
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    # Relationships
    prediction: Mapped[Prediction] = relationship(back_populates="feedback")

    __table_args__ = (
        CheckConstraint("accuracy_rating BETWEEN 1 AND 5", name="ck_feedback_accuracy_rating"),
        CheckConstraint("helpful_rating BETWEEN 1 AND 5", name="ck_feedback_helpful_rating"),
        CheckConstraint(
            "feedback_type IN ('accurate','partially_accurate','inaccurate','too_vague','could_not_verify')",
            name="ck_feedback_type",
        ),
        Index("idx_prediction_feedback_prediction", "prediction_id"),
        Index("idx_prediction_feedback_user", "user_id", "submitted_at"),
    )
