"""
Portal Exceptions.

Error taxonomy shared by the backend client, the services and the routers:

    ValidationError             caught before any network call
    AuthenticationExpiredError  backend answered 401; global logout
    ApiError                    any other non-2xx backend answer
    NetworkError                transport failure or unreadable response

Routers translate these into JSON error bodies or page redirects;
nothing is retried.
"""

from typing import Any

GENERIC_ERROR_MESSAGE = "An unknown error occurred"


class PortalError(Exception):
    """Base exception for portal errors."""

    status_code: int = 500

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(PortalError):
    """Raised when input fails pre-flight validation. No request was sent."""

    status_code = 422

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class AuthenticationExpiredError(PortalError):
    """Raised when the backend rejects the bearer token (HTTP 401)."""

    status_code = 401

    def __init__(self, message: str = "Your session has expired. Please log in again.") -> None:
        super().__init__(message)


class ApiError(PortalError):
    """
    Raised for any non-2xx backend response other than 401.

    The message is taken verbatim from the backend's {message | error} envelope.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        payload: Any = None,
    ) -> None:
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)

    @property
    def requires_two_factor(self) -> bool:
        """Whether the backend rejected a login because a 2FA code is needed."""
        if isinstance(self.payload, dict):
            if self.payload.get("requiresTwoFactor"):
                return True
            data = self.payload.get("data")
            if isinstance(data, dict) and data.get("requiresTwoFactor"):
                return True
        return False


class NetworkError(PortalError):
    """Raised when the backend cannot be reached or answers with garbage."""

    status_code = 502

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE) -> None:
        super().__init__(message)


class PermissionDeniedError(PortalError):
    """Raised when the current role may not perform an action."""

    status_code = 403


class InvalidStateError(PortalError):
    """Raised when an action is not allowed in the current lifecycle state."""

    status_code = 409


class DuplicateSubmissionError(PortalError):
    """Raised when a form is submitted again while the first submission is in flight."""

    status_code = 409

    def __init__(self, message: str = "This form is already being submitted") -> None:
        super().__init__(message)


class ScopeClosedError(PortalError):
    """Raised when work is started in a request scope that has been closed."""

    status_code = 499

    def __init__(self, message: str = "Request scope closed") -> None:
        super().__init__(message)


def extract_api_message(payload: Any, fallback: str) -> str:
    """
    Extract a user-facing message from a backend error body.

    Precedence: ``message`` -> ``error`` -> fallback.
    """
    if isinstance(payload, dict):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    if isinstance(payload, str) and payload.strip():
        return payload
    return fallback


def get_error_message(error: BaseException) -> str:
    """Return the text shown to the user for any exception."""
    if isinstance(error, PortalError):
        return error.message or GENERIC_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE
