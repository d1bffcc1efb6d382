"""Stored birth data, one row per user."""

from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import CheckConstraint, Date, Float, Text, Time, func, text
from sqlalchemy.orm import Mapped, mapped_column

from verity.models.base import Base, UTCDateTime


class UserBirthData(Base):
    __tablename__ = "user_birth_data"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    birth_date: Mapped[date] = mapped_column(Date, nullable=False)
    birth_time: Mapped[time | None] = mapped_column(Time)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    timezone: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'UTC'"))
    house_system: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'placidus'"))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_birth_data_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_birth_data_longitude"),
    )
