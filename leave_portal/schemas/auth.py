"""
Authentication Schemas.

Pydantic models for the login sequence, 2FA enrollment and the
current-user shape the pages work with.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with the backend's camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserRole(str, Enum):
    """Role of the signed-in user. Fixed for the lifetime of a session."""

    STAFF = "STAFF"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


REVIEWER_ROLES = frozenset({UserRole.MANAGER, UserRole.ADMIN})


class User(CamelModel):
    """Current user as the portal sees it."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.STAFF
    two_factor_enabled: bool = False
    avatar: Optional[str] = None
    manager_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def can_review(self) -> bool:
        return self.role in REVIEWER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class LoginResult(CamelModel):
    """Normalized answer of /auth/login, /auth/register and /auth/verify-2fa."""

    token: Optional[str] = None
    user: Optional[User] = None
    requires_two_factor: bool = False
    message: Optional[str] = None


class TwoFactorSecret(CamelModel):
    """Provisioning material issued when 2FA enrollment starts."""

    secret: Optional[str] = None
    qr_code_url: Optional[str] = None


# =============================================================================
# Request bodies accepted by the portal
# =============================================================================


class LoginRequest(CamelModel):
    """Credentials submitted on the login form."""

    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., description="Account password")
    two_factor_code: Optional[str] = Field(
        None, description="Inline 2FA code for backends that accept it on login"
    )


class RegisterRequest(CamelModel):
    """Self-registration form."""

    email: EmailStr
    password: str
    first_name: str
    last_name: str


class VerifyCodeRequest(CamelModel):
    """A 6-digit authenticator code."""

    code: str = Field(..., description="6-digit code from the authenticator app")


class DisableTwoFactorRequest(CamelModel):
    """Disabling 2FA must be explicitly confirmed."""

    confirm: bool = False


class SessionResponse(CamelModel):
    """State of the login sequence, returned after every auth step."""

    state: str
    authenticated: bool
    user: Optional[User] = None
    pending_email: Optional[str] = None
    message: Optional[str] = None
    redirect: Optional[str] = None


class EnrollmentResponse(CamelModel):
    """State of 2FA enrollment for the current user."""

    state: str
    enabled: bool
    secret: Optional[str] = None
    qr_code_url: Optional[str] = None
    message: Optional[str] = None
