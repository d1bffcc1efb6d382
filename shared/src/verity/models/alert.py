"""Scheduled reminders attached to a prediction."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from verity.models.base import Base, UTCDateTime

if TYPE_CHECKING:
    from verity.models.prediction import Prediction


class PredictionAlert(Base):
    __tablename__ = "prediction_alerts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    prediction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(Text, nullable=False)
    alert_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    offset_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'scheduled'"), default="scheduled")
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    # Relationships
    prediction: Mapped[Prediction] = relationship(back_populates="alerts")

    __table_args__ = (
        CheckConstraint(
            "alert_type IN ('48hr_warning','24hr_warning','2hr_warning','verification_reminder')",
            name="ck_prediction_alert_type",
        ),
        CheckConstraint("status IN ('scheduled','sent','cancelled')", name="ck_prediction_alert_status"),
        Index("idx_prediction_alerts_status_at", "status", "alert_at"),
        Index("idx_prediction_alerts_prediction", "prediction_id"),
    )
