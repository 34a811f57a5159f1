"""
Authentication API.

Wraps the /auth endpoints and /users/me. Answers are normalized into
LoginResult / User through leave_portal.services.mapping.
"""

import logging
from typing import Optional

from leave_portal.clients.base import BackendClient
from leave_portal.core.exceptions import NetworkError
from leave_portal.schemas.auth import LoginResult, TwoFactorSecret, User
from leave_portal.services.mapping import (
    map_enabled_flag,
    map_login_result,
    map_two_factor_secret,
    map_user,
)

logger = logging.getLogger(__name__)


class AuthApi:
    """Client for login, registration, 2FA and the current-user profile."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def login(
        self,
        email: str,
        password: str,
        two_factor_code: Optional[str] = None,
    ) -> LoginResult:
        """
        POST /auth/login.

        ``two_factor_code`` is only sent when given, for backends that accept
        the code inline.
        """
        body = {"email": email, "password": password}
        if two_factor_code:
            body["twoFactorCode"] = two_factor_code
        payload = await self._backend.post("/auth/login", json=body, unwrap=False)
        return map_login_result(payload)

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> LoginResult:
        """POST /auth/register."""
        payload = await self._backend.post(
            "/auth/register",
            json={
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
            unwrap=False,
        )
        return map_login_result(payload)

    async def verify_two_factor(self, email: str, code: str) -> LoginResult:
        """POST /auth/verify-2fa with the email retained from the login step."""
        payload = await self._backend.post(
            "/auth/verify-2fa", json={"email": email, "code": code}, unwrap=False
        )
        return map_login_result(payload)

    async def enable_two_factor(self) -> TwoFactorSecret:
        """POST /auth/2fa/enable: issue a provisioning secret."""
        payload = await self._backend.post("/auth/2fa/enable")
        return map_two_factor_secret(payload)

    async def verify_and_enable(self, code: str) -> bool:
        """POST /auth/2fa/verify-enable. Returns the backend's ``enabled`` flag."""
        payload = await self._backend.post("/auth/2fa/verify-enable", json={"code": code})
        return map_enabled_flag(payload)

    async def disable_two_factor(self) -> None:
        await self._backend.post("/auth/2fa/disable")

    async def get_current_user(self) -> User:
        """GET /users/me."""
        payload = await self._backend.get("/users/me")
        if not isinstance(payload, dict):
            logger.error("Backend returned no profile for /users/me")
            raise NetworkError()
        return map_user(payload)
