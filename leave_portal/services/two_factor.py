"""
Two-Factor Login and Enrollment.

TwoFactorLoginFlow drives the login sequence:

    ANONYMOUS -> CREDENTIALS_SUBMITTED -> AUTHENTICATED
                                       -> TWO_FACTOR_PENDING -> AUTHENTICATED

While TWO_FACTOR_PENDING the submitted email is retained (in the pending
cookie) so a wrong code can be retried without re-entering the password.
No token is held in that state.

TwoFactorEnrollment drives turning 2FA on and off for a signed-in user:

    DISABLED -> SECRET_ISSUED -> ENABLED -> DISABLED
"""

import logging
import re
from enum import Enum
from typing import Optional

from leave_portal.clients.auth import AuthApi
from leave_portal.core.exceptions import (
    ApiError,
    InvalidStateError,
    PortalError,
    ValidationError,
)
from leave_portal.schemas.auth import LoginResult, TwoFactorSecret, User
from leave_portal.services.session import SessionStore

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"[0-9]{6}")


class LoginState(str, Enum):
    ANONYMOUS = "ANONYMOUS"
    CREDENTIALS_SUBMITTED = "CREDENTIALS_SUBMITTED"
    TWO_FACTOR_PENDING = "TWO_FACTOR_PENDING"
    AUTHENTICATED = "AUTHENTICATED"


class EnrollmentState(str, Enum):
    DISABLED = "DISABLED"
    SECRET_ISSUED = "SECRET_ISSUED"
    ENABLED = "ENABLED"


def validate_code(code: Optional[str]) -> str:
    """
    Check that a verification code is exactly six ASCII digits.

    Raises:
        ValidationError: Otherwise. No request may be sent.
    """
    if code is None or not CODE_PATTERN.fullmatch(code):
        raise ValidationError("Verification code must be exactly 6 digits", field="code")
    return code


class TwoFactorLoginFlow:
    """
    Login sequence for one browser session.

    The starting state is derived from the session: signed in users are
    AUTHENTICATED, a retained email means TWO_FACTOR_PENDING.
    """

    def __init__(self, session: SessionStore, auth: AuthApi) -> None:
        self._session = session
        self._auth = auth
        if session.authenticated:
            self.state = LoginState.AUTHENTICATED
        elif session.pending_email:
            self.state = LoginState.TWO_FACTOR_PENDING
        else:
            self.state = LoginState.ANONYMOUS
        self.message: Optional[str] = None

    @property
    def pending_email(self) -> Optional[str]:
        if self.state != LoginState.TWO_FACTOR_PENDING:
            return None
        return self._session.pending_email

    def _enter_pending(self, email: str, message: Optional[str]) -> LoginState:
        persistence = self._session.persistence
        persistence.clear_token()
        persistence.set_pending_email(email)
        self._session.user = None
        self.state = LoginState.TWO_FACTOR_PENDING
        self.message = message or "Two-factor authentication required"
        logger.info(f"Login for {email} awaits a verification code")
        return self.state

    async def _complete(self, result: LoginResult) -> LoginState:
        await self._session.login(result)
        self.state = LoginState.AUTHENTICATED
        self.message = result.message
        return self.state

    async def submit_credentials(
        self,
        email: str,
        password: str,
        two_factor_code: Optional[str] = None,
    ) -> LoginState:
        """
        Submit email and password.

        Args:
            email: Account email; retained if a code is required.
            password: Account password; never retained.
            two_factor_code: Optional inline code for backends that accept it.

        Returns:
            AUTHENTICATED or TWO_FACTOR_PENDING.

        Raises:
            ValidationError: Missing email or password, or a malformed inline code.
            ApiError / NetworkError: Login refused; the state returns to ANONYMOUS.
        """
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required", field="email")
        if not password:
            raise ValidationError("Password is required", field="password")
        if two_factor_code:
            validate_code(two_factor_code)

        self._session.persistence.clear_pending_email()
        self.state = LoginState.CREDENTIALS_SUBMITTED
        try:
            result = await self._auth.login(email, password, two_factor_code)
        except ApiError as e:
            if e.requires_two_factor and not two_factor_code:
                return self._enter_pending(email, e.message)
            self.state = LoginState.ANONYMOUS
            raise
        except PortalError:
            self.state = LoginState.ANONYMOUS
            raise

        if result.requires_two_factor and not two_factor_code:
            return self._enter_pending(email, result.message)

        if not result.token:
            self.state = LoginState.ANONYMOUS
            raise ApiError(result.message or "Login failed", status_code=502)

        return await self._complete(result)

    async def verify_code(self, code: str) -> LoginState:
        """
        Submit the authenticator code for the retained email.

        On failure the flow stays TWO_FACTOR_PENDING and the email is kept.

        Raises:
            InvalidStateError: No verification is pending.
            ValidationError: The code is not exactly 6 digits.
        """
        validate_code(code)
        email = self.pending_email
        if email is None:
            raise InvalidStateError("No two-factor verification is pending. Please log in again.")

        # Verification is unauthenticated; a leftover token must not be sent.
        self._session.persistence.clear_token()

        try:
            result = await self._auth.verify_two_factor(email, code)
        except PortalError as e:
            logger.info(f"Verification code rejected for {email}: {e.message}")
            raise

        if not result.token:
            raise ApiError(result.message or "Verification failed", status_code=400)

        return await self._complete(result)

    def cancel(self) -> LoginState:
        """Abandon a pending verification."""
        self._session.persistence.clear_pending_email()
        self.state = LoginState.ANONYMOUS
        self.message = None
        return self.state

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> LoginState:
        """Create an account and sign in with it."""
        fields = {
            "email": (email or "").strip(),
            "password": password,
            "firstName": (first_name or "").strip(),
            "lastName": (last_name or "").strip(),
        }
        labels = {"email": "Email", "password": "Password", "firstName": "First name", "lastName": "Last name"}
        for field, value in fields.items():
            if not value:
                raise ValidationError(f"{labels[field]} is required", field=field)

        result = await self._auth.register(
            fields["email"], password, fields["firstName"], fields["lastName"]
        )
        if not result.token:
            raise ApiError(result.message or "Registration failed", status_code=502)
        return await self._complete(result)


class TwoFactorEnrollment:
    """
    Two-phase 2FA enrollment for the signed-in user.

    Enrollment is not active until a code has been verified against the
    issued secret.
    """

    def __init__(self, user: User, auth: AuthApi) -> None:
        self._auth = auth
        self.user = user
        self.state = EnrollmentState.ENABLED if user.two_factor_enabled else EnrollmentState.DISABLED
        self.secret: Optional[TwoFactorSecret] = None

    @property
    def enabled(self) -> bool:
        return self.state == EnrollmentState.ENABLED

    async def begin(self) -> TwoFactorSecret:
        """Request a provisioning secret and QR target."""
        if self.state == EnrollmentState.ENABLED:
            raise InvalidStateError("Two-factor authentication is already enabled")
        self.secret = await self._auth.enable_two_factor()
        self.state = EnrollmentState.SECRET_ISSUED
        logger.info(f"2FA secret issued for user {self.user.id}")
        return self.secret

    async def confirm(self, code: str) -> EnrollmentState:
        """
        Verify a code against the issued secret and activate 2FA.

        The secret may have been issued in an earlier request; the backend
        decides whether one is outstanding.

        Raises:
            InvalidStateError: 2FA is already enabled.
            ValidationError: The code is not exactly 6 digits.
            ApiError: The backend did not enable 2FA.
        """
        if self.state == EnrollmentState.ENABLED:
            raise InvalidStateError("Two-factor authentication is already enabled")
        validate_code(code)

        enabled = await self._auth.verify_and_enable(code)
        if not enabled:
            raise ApiError("Verification failed. Two-factor authentication was not enabled.", status_code=400)

        self.state = EnrollmentState.ENABLED
        self.secret = None
        self.user = self.user.model_copy(update={"two_factor_enabled": True})
        logger.info(f"2FA enabled for user {self.user.id}")
        return self.state

    async def disable(self, confirmed: bool) -> EnrollmentState:
        """
        Turn 2FA off. Requires explicit confirmation.

        Raises:
            ValidationError: ``confirmed`` is False. No request is sent.
        """
        if not confirmed:
            raise ValidationError(
                "Please confirm that you want to disable two-factor authentication",
                field="confirm",
            )
        await self._auth.disable_two_factor()
        self.state = EnrollmentState.DISABLED
        self.secret = None
        self.user = self.user.model_copy(update={"two_factor_enabled": False})
        logger.info(f"2FA disabled for user {self.user.id}")
        return self.state
