from src.modules.lifecycle.service import LifecycleService

__all__ = ["LifecycleService"]
