"""
Database Models Package
========================

SQLAlchemy ORM models for the progression engine.

All models:
- Are schema-only, with no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit TimestampMixin for row bookkeeping
- Use explicit foreign key constraints with CASCADE rules
- Store enum-keyed maps as JSONB objects keyed by member value

Importing this package registers every table on `Base.metadata`, which
`DatabaseService.create_schema()` relies on.
"""

from src.core.database.base import Base

from .progression import (
    ActivityRecordRow,
    ProgressionProfile,
    ProgressionSettingsRow,
)

__all__ = [
    "Base",
    "ProgressionProfile",
    "ActivityRecordRow",
    "ProgressionSettingsRow",
]
