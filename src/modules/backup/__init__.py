from src.modules.backup.service import BackupDocument, BackupService

__all__ = ["BackupService", "BackupDocument"]
