"""
Portal Schemas.

Pydantic models for request/response validation and the internal
view-model shapes.
"""

from leave_portal.schemas.auth import (
    LoginRequest,
    LoginResult,
    RegisterRequest,
    SessionResponse,
    TwoFactorSecret,
    User,
    UserRole,
    VerifyCodeRequest,
)
from leave_portal.schemas.leave import (
    BalanceAdjustment,
    LeaveApplication,
    LeaveApplicationDraft,
    LeaveBalance,
    LeaveStatus,
    LeaveTypeConfig,
    Page,
    PublicHoliday,
    ReviewDecision,
    ReviewRequest,
)

__all__ = [
    "LoginRequest",
    "LoginResult",
    "RegisterRequest",
    "SessionResponse",
    "TwoFactorSecret",
    "User",
    "UserRole",
    "VerifyCodeRequest",
    "BalanceAdjustment",
    "LeaveApplication",
    "LeaveApplicationDraft",
    "LeaveBalance",
    "LeaveStatus",
    "LeaveTypeConfig",
    "Page",
    "PublicHoliday",
    "ReviewDecision",
    "ReviewRequest",
]
