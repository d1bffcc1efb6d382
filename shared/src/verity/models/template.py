"""Prediction text template model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Float, Index, Integer, Text, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from verity.models.base import Base, JSONType, UTCDateTime

MIN_CONFIDENCE_MULTIPLIER = 0.1
MAX_CONFIDENCE_MULTIPLIER = 2.0


class PredictionTemplate(Base):
    __tablename__ = "prediction_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    template_name: Mapped[str] = mapped_column(Text, nullable=False)
    template_content: Mapped[str] = mapped_column(Text, nullable=False)
    trigger_factors: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    confidence_multiplier: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("1.0"), default=1.0)
    specificity_level: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'medium'"))
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0"), default=0.0)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("TRUE"), default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "confidence_multiplier BETWEEN 0.1 AND 2.0",
            name="ck_prediction_template_multiplier",
        ),
        CheckConstraint("success_rate BETWEEN 0 AND 1", name="ck_prediction_template_success_rate"),
        CheckConstraint(
            "specificity_level IN ('low','medium','high')",
            name="ck_prediction_template_specificity",
        ),
        UniqueConstraint("category", "template_name", name="uq_prediction_template_category_name"),
        Index("idx_prediction_templates_category_active", "category", "active"),
    )
