"""
Progression module.

Activity logging and reversible deletion, plus the RecordStore
implementations the services persist through.
"""

from src.modules.progression.memory_store import InMemoryRecordStore
from src.modules.progression.service import (
    ActivityDeletionResult,
    ActivityLogResult,
    DeletionPreview,
    GainPreview,
    ProgressionService,
)

__all__ = [
    "ProgressionService",
    "ActivityLogResult",
    "ActivityDeletionResult",
    "DeletionPreview",
    "GainPreview",
    "InMemoryRecordStore",
]
