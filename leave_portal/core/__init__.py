"""
Leave Portal Core.

Framework layer: configuration, logging, HTTP client lifecycle,
cookie sealing, error taxonomy and the FastAPI application factory.
"""

from leave_portal.core.config import PortalSettings, get_settings
from leave_portal.core.exceptions import (
    ApiError,
    AuthenticationExpiredError,
    DuplicateSubmissionError,
    InvalidStateError,
    NetworkError,
    PermissionDeniedError,
    PortalError,
    ScopeClosedError,
    ValidationError,
    get_error_message,
)

__all__ = [
    "PortalSettings",
    "get_settings",
    "ApiError",
    "AuthenticationExpiredError",
    "DuplicateSubmissionError",
    "InvalidStateError",
    "NetworkError",
    "PermissionDeniedError",
    "PortalError",
    "ScopeClosedError",
    "ValidationError",
    "get_error_message",
]
