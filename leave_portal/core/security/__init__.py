"""
Security Module.

Sealed cookies for the bearer token and the pending 2FA email.
"""

from leave_portal.core.security.cookies import CookieSealer
from leave_portal.core.security.session_cookies import (
    CookieSessionPersistence,
    clear_session_cookies,
)

__all__ = [
    "CookieSealer",
    "CookieSessionPersistence",
    "clear_session_cookies",
]
