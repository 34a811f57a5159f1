"""
Session Store.

The signed-in identity of one browser session. A SessionStore is built for
every incoming request from its persistence (sealed cookies in the web app,
memory in tests) and handed to handlers through dependency injection.

Lifecycle:
    bootstrap()          resolve the user from a persisted token; never raises
    login(result)        persist token, populate user, clear pending 2FA
    refresh()            re-read the profile; the role must not change
    logout()             forget token, pending 2FA and user
    handle_unauthorized() global logout after a backend 401
"""

import logging
from typing import Optional, Protocol

from leave_portal.clients.auth import AuthApi
from leave_portal.core.exceptions import AuthenticationExpiredError
from leave_portal.schemas.auth import LoginResult, User

logger = logging.getLogger(__name__)


class SessionPersistence(Protocol):
    """Storage for the bearer token and the email awaiting 2FA."""

    def get_token(self) -> Optional[str]: ...

    def set_token(self, token: str) -> None: ...

    def clear_token(self) -> None: ...

    def get_pending_email(self) -> Optional[str]: ...

    def set_pending_email(self, email: str) -> None: ...

    def clear_pending_email(self) -> None: ...


class MemorySessionPersistence:
    """In-memory persistence for scripts and tests."""

    def __init__(self, token: Optional[str] = None, pending_email: Optional[str] = None) -> None:
        self.token = token
        self.pending_email = pending_email

    def get_token(self) -> Optional[str]:
        return self.token

    def set_token(self, token: str) -> None:
        self.token = token

    def clear_token(self) -> None:
        self.token = None

    def get_pending_email(self) -> Optional[str]:
        return self.pending_email

    def set_pending_email(self, email: str) -> None:
        self.pending_email = email

    def clear_pending_email(self) -> None:
        self.pending_email = None


class SessionStore:
    """
    Current user and token state for one browser session.

    Args:
        persistence: Where the token and pending 2FA email are kept.
        auth: Auth API used to resolve the current user.
    """

    def __init__(self, persistence: SessionPersistence, auth: AuthApi) -> None:
        self._persistence = persistence
        self._auth = auth
        self.user: Optional[User] = None
        self.loading = True

    @property
    def persistence(self) -> SessionPersistence:
        return self._persistence

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    @property
    def has_token(self) -> bool:
        return bool(self._persistence.get_token())

    @property
    def pending_email(self) -> Optional[str]:
        return self._persistence.get_pending_email()

    async def bootstrap(self) -> Optional[User]:
        """
        Resolve the current user from the persisted token.

        Any failure clears the token and leaves the session anonymous.
        ``loading`` is False afterwards in every case.
        """
        try:
            if not self._persistence.get_token():
                return None
            try:
                self.user = await self._auth.get_current_user()
            except Exception as e:
                logger.info(f"Session bootstrap failed, clearing token: {type(e).__name__}")
                self._persistence.clear_token()
                self.user = None
            return self.user
        finally:
            self.loading = False

    async def login(self, result: LoginResult) -> User:
        """
        Complete a successful authentication.

        When the backend returned a token without a profile, the profile is
        fetched with the new token.
        """
        if not result.token:
            raise ValueError("Cannot log in without a token")

        self._persistence.set_token(result.token)
        self._persistence.clear_pending_email()
        if result.user is not None:
            self.user = result.user
        else:
            self.user = await self._auth.get_current_user()
        self.loading = False
        logger.info(f"User {self.user.id} signed in ({self.user.role.value})")
        return self.user

    async def refresh(self) -> User:
        """
        Re-read the current profile.

        The role is fixed for the lifetime of a session; a changed role
        ends the session.

        Raises:
            AuthenticationExpiredError: No token, the token was rejected, or
                the role changed.
        """
        if not self._persistence.get_token():
            raise AuthenticationExpiredError()

        user = await self._auth.get_current_user()
        if self.user is not None and user.role != self.user.role:
            logger.warning(
                f"Role of user {user.id} changed from {self.user.role.value} "
                f"to {user.role.value}; ending session"
            )
            self.logout()
            raise AuthenticationExpiredError(
                "Your role has changed. Please log in again."
            )
        self.user = user
        return user

    def logout(self) -> None:
        """Forget the token, any pending 2FA step and the user."""
        if self.user is not None:
            logger.info(f"User {self.user.id} signed out")
        self._persistence.clear_token()
        self._persistence.clear_pending_email()
        self.user = None
        self.loading = False

    def handle_unauthorized(self) -> None:
        """Global logout after a backend 401."""
        logger.info("Clearing session after backend rejected the token")
        self.logout()
