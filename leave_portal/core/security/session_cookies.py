"""
Cookie Session Persistence.

Keeps the bearer token and the email awaiting 2FA in sealed, HttpOnly
cookies. Reads happen when the request arrives; writes are queued and
applied to the outgoing response by the session cookie middleware
(see leave_portal.core.server).
"""

import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from leave_portal.core.config import PortalSettings
from leave_portal.core.security.cookies import CookieSealer

logger = logging.getLogger(__name__)

# request.state attribute the middleware looks for
STATE_ATTRIBUTE = "session_persistence"


class CookieSessionPersistence:
    """
    SessionPersistence backed by the request's cookies.

    Args:
        request: Incoming request; cookies are read once at construction.
        sealer: Cookie sealer used for both cookies.
        settings: Cookie names, lifetimes and flags.
    """

    def __init__(self, request: Request, sealer: CookieSealer, settings: PortalSettings) -> None:
        self._sealer = sealer
        self._settings = settings
        self._writes: dict[str, Optional[str]] = {}

        self._token = self._read(request, settings.token_cookie_name)
        self._pending_email = self._read(request, settings.pending_cookie_name)

    def _read(self, request: Request, name: str) -> Optional[str]:
        raw = request.cookies.get(name)
        value = self._sealer.unseal(raw, name)
        if raw and value is None:
            # Unreadable cookie: drop it from the browser as well.
            self._writes[name] = None
        return value

    # --- Token ---

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token
        self._writes[self._settings.token_cookie_name] = self._sealer.seal(
            token, self._settings.token_cookie_name
        )

    def clear_token(self) -> None:
        self._token = None
        self._writes[self._settings.token_cookie_name] = None

    # --- Pending 2FA ---

    def get_pending_email(self) -> Optional[str]:
        return self._pending_email

    def set_pending_email(self, email: str) -> None:
        self._pending_email = email
        self._writes[self._settings.pending_cookie_name] = self._sealer.seal(
            email, self._settings.pending_cookie_name
        )

    def clear_pending_email(self) -> None:
        if self._pending_email is None and self._settings.pending_cookie_name not in self._writes:
            return
        self._pending_email = None
        self._writes[self._settings.pending_cookie_name] = None

    # --- Response ---

    @property
    def has_changes(self) -> bool:
        return bool(self._writes)

    def _max_age(self, name: str) -> int:
        if name == self._settings.pending_cookie_name:
            return self._settings.pending_max_age_seconds
        return self._settings.token_max_age_seconds

    def apply(self, response: Response) -> None:
        """Write the queued cookie changes onto ``response``."""
        for name, value in self._writes.items():
            if value is None:
                response.delete_cookie(
                    name,
                    path="/",
                    secure=self._settings.cookie_secure,
                    httponly=True,
                    samesite="lax",
                )
            else:
                response.set_cookie(
                    name,
                    value,
                    max_age=self._max_age(name),
                    path="/",
                    secure=self._settings.cookie_secure,
                    httponly=True,
                    samesite="lax",
                )
        self._writes.clear()


def clear_session_cookies(response: Response, settings: PortalSettings) -> None:
    """Delete both session cookies on ``response``."""
    for name in (settings.token_cookie_name, settings.pending_cookie_name):
        response.delete_cookie(
            name,
            path="/",
            secure=settings.cookie_secure,
            httponly=True,
            samesite="lax",
        )
