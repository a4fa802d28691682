from src.modules.profile.service import ProfileService

__all__ = ["ProfileService"]
