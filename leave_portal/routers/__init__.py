"""
Portal Routers.

JSON endpoints under /api and the server-rendered pages.
"""

from leave_portal.routers.admin import router as admin_router
from leave_portal.routers.auth import router as auth_router
from leave_portal.routers.leave import router as leave_router
from leave_portal.routers.pages import router as pages_router

__all__ = ["admin_router", "auth_router", "leave_router", "pages_router"]
