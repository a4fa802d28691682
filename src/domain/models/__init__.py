"""
Domain models package for the progression engine.

Design Notes
------------
Domain models are separate from database models:
- Database models (src/database/models/): SQLAlchemy table schemas
- Domain models (src/domain/models/): immutable values used by services

Record stores convert between the two.
"""

from .activity import ActivityRecord
from .base import LastActivityMap, StatMap, ensure_utc
from .enums import ActivityCategory, ActivityKind, StatKind
from .profile import DEFAULT_STAT_VALUE, UserProfile, default_stats
from .settings import ProgressionSettings

__all__ = [
    "ActivityCategory",
    "ActivityKind",
    "StatKind",
    "StatMap",
    "LastActivityMap",
    "ensure_utc",
    "UserProfile",
    "DEFAULT_STAT_VALUE",
    "default_stats",
    "ActivityRecord",
    "ProgressionSettings",
]
