"""
ActivityRecordRow: one logged activity.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import DateTime, Double, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin


class ActivityRecordRow(Base, TimestampMixin):
    """
    Captured EXP and stat gains of a logged activity.

    `kind` holds the activity kind name and is parsed strictly on read.
    An empty `stat_gains` object marks a legacy record.
    """

    __tablename__ = "activity_records"
    __table_args__ = (
        Index("ix_activity_records_profile_occurred", "profile_id", "occurred_at"),
        Index("ix_activity_records_profile_kind", "profile_id", "kind"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    profile_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("progression_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )

    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    exp_gained: Mapped[float] = mapped_column(Double, nullable=False)
    stat_gains: Mapped[Dict[str, float]] = mapped_column(JSONB, nullable=False, default=dict)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
