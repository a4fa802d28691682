"""
Progression ORM models.

Exports:
- ProgressionProfile
- ActivityRecordRow
- ProgressionSettingsRow
"""

from .activity_record import ActivityRecordRow
from .profile import ProgressionProfile
from .settings import ProgressionSettingsRow

__all__ = [
    "ProgressionProfile",
    "ActivityRecordRow",
    "ProgressionSettingsRow",
]
