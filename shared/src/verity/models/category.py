"""Per-category settings and rolling statistics."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Float, Integer, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from verity.models.base import Base, UTCDateTime


class PredictionCategory(Base):
    __tablename__ = "prediction_categories"

    category_name: Mapped[str] = mapped_column(Text, primary_key=True)
    description: Mapped[str | None] = mapped_column(Text)
    premium_only: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("FALSE"), default=False)
    confidence_threshold: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0.3"), default=0.3)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("TRUE"), default=True)

    total_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    average_confidence: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0"), default=0.0)
    resolved_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    accurate_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    rated_predictions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    average_accuracy: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0"), default=0.0)
    last_confidence_correlation: Mapped[float | None] = mapped_column(Float)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
