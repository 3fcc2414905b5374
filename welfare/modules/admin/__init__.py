# Admin module
from welfare.modules.admin.services import AdminService
from welfare.modules.admin.router import router

__all__ = ["AdminService", "router"]
