from dodgeboard.modules.admin.service import AdminService

__all__ = ["AdminService"]
