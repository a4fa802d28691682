"""
ProgressionSettingsRow: per-profile settings.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin


class ProgressionSettingsRow(Base, TimestampMixin):
    __tablename__ = "progression_settings"

    profile_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("progression_profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )

    relaxed_weekend_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    degradation_warnings_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Activity kind names, in declaration order
    enabled_activities: Mapped[List[str]] = mapped_column(JSONB, nullable=False, default=list)

    last_backup_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
