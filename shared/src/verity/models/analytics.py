"""Daily per-user, per-category prediction analytics."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Date, Float, Index, Integer, Text, UniqueConstraint, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from verity.models.base import Base, UTCDateTime


class PredictionAnalytics(Base):
    __tablename__ = "prediction_analytics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    average_confidence: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0"), default=0.0)
    resolved_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    accurate_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    expired_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    rated_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    average_accuracy: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0"), default=0.0)
    last_updated: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "category", "activity_date", name="uq_prediction_analytics_user_category_date"),
        Index("idx_prediction_analytics_user", "user_id", "activity_date"),
    )
