"""
Backend API Clients.

One class per backend area, all sharing a BackendClient.
"""

from leave_portal.clients.auth import AuthApi
from leave_portal.clients.base import PUBLIC_ENDPOINTS, BackendClient, TokenStore
from leave_portal.clients.leave import LeaveApi
from leave_portal.clients.users import UserDirectory, UsersApi

__all__ = [
    "AuthApi",
    "BackendClient",
    "LeaveApi",
    "PUBLIC_ENDPOINTS",
    "TokenStore",
    "UserDirectory",
    "UsersApi",
]
