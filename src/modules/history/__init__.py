from src.modules.history.service import ActivityHistoryService, ActivityStats

__all__ = ["ActivityHistoryService", "ActivityStats"]
