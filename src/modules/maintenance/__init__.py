"""
Maintenance services: legacy record migration, integrity checks and full
data reset.
"""

from src.modules.maintenance.integrity_service import (
    DataIntegrityService,
    IntegrityIssue,
    IntegrityReport,
    IssueKind,
    IssueSeverity,
)
from src.modules.maintenance.migration_service import ActivityMigrationService, MigrationStatus
from src.modules.maintenance.reset_service import DataResetService, ResetResult

__all__ = [
    "ActivityMigrationService",
    "MigrationStatus",
    "DataIntegrityService",
    "IntegrityIssue",
    "IntegrityReport",
    "IssueKind",
    "IssueSeverity",
    "DataResetService",
    "ResetResult",
]
