"""Per-user prediction preferences."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from verity.models.base import Base, UTCDateTime


class UserPredictionPreferences(Base):
    __tablename__ = "user_prediction_preferences"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    # Used when a generation request does not name a timeframe
    preferred_timeframe_hours: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("preferred_timeframe_hours > 0", name="ck_preferences_timeframe_positive"),
    )
