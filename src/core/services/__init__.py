from src.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
