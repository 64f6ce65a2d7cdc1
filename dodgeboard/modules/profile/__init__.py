from dodgeboard.modules.profile.service import ProfileService, ProfileView

__all__ = ["ProfileService", "ProfileView"]
