"""
ProgressionProfile: one row per progression profile.
Schema only; conversion to the domain value lives in the record store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import Boolean, DateTime, Double, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin


class ProgressionProfile(Base, TimestampMixin):
    """
    Level, EXP and stats of a profile.

    `stats` maps stat names to values; `last_activity` maps activity kind
    names to ISO-8601 timestamps. `created_at` holds the profile's own
    creation time and is written explicitly.
    """

    __tablename__ = "progression_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_exp: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)

    stats: Mapped[Dict[str, float]] = mapped_column(JSONB, nullable=False, default=dict)
    last_activity: Mapped[Dict[str, str]] = mapped_column(JSONB, nullable=False, default=dict)

    last_active: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_decay_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    has_completed_onboarding: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
