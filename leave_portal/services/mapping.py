"""
View-Model Mapping.

Pure functions that normalize backend payloads into the portal's schema
objects. The backend has shipped several generations of field names; each
mapper reads them through an explicit precedence table:

    canonical field -> legacy alias(es) -> default

LeaveApplication precedence:

    | field            | keys read, in order               | default |
    |------------------|-----------------------------------|---------|
    | number_of_days   | numberOfDays, days                | 0       |
    | user_id          | userId, employeeId                | ""      |
    | leave_type_name  | leaveTypeName, leaveType          | ""      |
    | leave_type_id    | leaveTypeId                       | ""      |
    | created_at       | createdAt, submittedAt            | None    |
    | reviewed_by      | reviewedBy, approverId            | None    |
    | reviewer_comment | reviewerComment, approvalComments | None    |
    | reviewed_at      | reviewedAt, approvedAt, rejectedAt| None    |
    | document_url     | documentUrl, documents[0]         | None    |

Nothing here performs I/O and nothing is recomputed: balances and day
counts are shown exactly as the server sends them.
"""

import datetime as dt
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Optional, TypeVar

from leave_portal.schemas.auth import LoginResult, TwoFactorSecret, User, UserRole
from leave_portal.schemas.leave import (
    BalanceAdjustment,
    LeaveApplication,
    LeaveBalance,
    LeaveStatus,
    LeaveTypeConfig,
    Page,
    PublicHoliday,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


def _pick(raw: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    """Return the first key present with a non-null value."""
    for key in keys:
        value = raw.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _as_optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _as_float(value: Any, default: float = 0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_date(value: Any) -> Optional[dt.date]:
    """Parse ISO dates, tolerating datetime strings."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning(f"Unparseable date from backend: {value!r}")
        return None


def _first_document(raw: Mapping[str, Any]) -> Optional[str]:
    documents = raw.get("documents")
    if isinstance(documents, list) and documents:
        return _as_optional_str(documents[0])
    return None


# =============================================================================
# Users and authentication
# =============================================================================


def map_role(roles: Any) -> UserRole:
    """
    Derive the single portal role from the backend's roles list.

    Only the first element counts. Elements may be plain strings or
    objects with a ``name``. Missing or unknown roles map to STAFF.
    """
    if isinstance(roles, (str, dict)):
        roles = [roles]
    if not isinstance(roles, list) or not roles:
        return UserRole.STAFF

    first = roles[0]
    name = first.get("name") if isinstance(first, dict) else first
    if not isinstance(name, str):
        return UserRole.STAFF

    name = name.strip().upper()
    if name.startswith("ROLE_"):
        name = name[len("ROLE_"):]
    try:
        return UserRole(name)
    except ValueError:
        return UserRole.STAFF


def map_user(raw: Mapping[str, Any]) -> User:
    """
    Map a backend user profile.

    ``firstName``/``lastName`` win over ``fullName``; a full name is split on
    its first whitespace run. The role comes from ``roles`` with ``role`` as
    fallback.
    """
    first_name = raw.get("firstName")
    last_name = raw.get("lastName")
    if first_name is None and last_name is None:
        parts = _as_str(raw.get("fullName")).split()
        first_name = parts[0] if parts else ""
        last_name = " ".join(parts[1:])

    return User(
        id=_as_str(raw.get("id")),
        email=_as_str(raw.get("email")),
        first_name=_as_str(first_name),
        last_name=_as_str(last_name),
        role=map_role(_pick(raw, ("roles", "role"))),
        two_factor_enabled=bool(_pick(raw, ("twoFactorEnabled", "is2faEnabled"), False)),
        avatar=_as_optional_str(raw.get("avatar")),
        manager_id=_as_optional_str(raw.get("managerId")),
    )


def map_login_result(raw: Any, message: Optional[str] = None) -> LoginResult:
    """
    Map the answer of /auth/login, /auth/register or /auth/verify-2fa.

    Accepts both the enveloped form ({message, status, data: {...}}) and a
    flat body. Token precedence: accessToken -> token.
    """
    if not isinstance(raw, Mapping):
        return LoginResult(message=message)

    body: Mapping[str, Any] = raw
    data = raw.get("data")
    if isinstance(data, Mapping):
        body = data
        message = message or _as_optional_str(raw.get("message"))

    user = body.get("user")
    return LoginResult(
        token=_as_optional_str(_pick(body, ("accessToken", "token"))),
        user=map_user(user) if isinstance(user, Mapping) else None,
        requires_two_factor=bool(
            _pick(body, ("requiresTwoFactor",), False) or raw.get("requiresTwoFactor", False)
        ),
        message=_as_optional_str(_pick(body, ("message",))) or message,
    )


def map_two_factor_secret(raw: Any) -> TwoFactorSecret:
    if not isinstance(raw, Mapping):
        return TwoFactorSecret()
    return TwoFactorSecret(
        secret=_as_optional_str(raw.get("secret")),
        qr_code_url=_as_optional_str(_pick(raw, ("qrCodeUrl", "qrCode", "otpauthUrl"))),
    )


def map_enabled_flag(raw: Any) -> bool:
    """Read ``enabled`` from a verify-and-enable answer."""
    if isinstance(raw, Mapping):
        return bool(_pick(raw, ("enabled", "twoFactorEnabled"), False))
    return bool(raw)


# =============================================================================
# Leave
# =============================================================================


def map_status(value: Any) -> LeaveStatus:
    """Normalize a status string. Unknown values map to UNKNOWN."""
    if isinstance(value, LeaveStatus):
        return value
    try:
        return LeaveStatus(_as_str(value).strip().upper())
    except ValueError:
        logger.warning(f"Unknown leave status from backend: {value!r}")
        return LeaveStatus.UNKNOWN


def map_leave_application(raw: Mapping[str, Any]) -> LeaveApplication:
    """Map a leave request; see the module docstring for precedence."""
    return LeaveApplication(
        id=_as_str(raw.get("id")),
        user_id=_as_str(_pick(raw, ("userId", "employeeId"))),
        employee_name=_as_optional_str(_pick(raw, ("employeeName", "userFullName"))),
        leave_type_id=_as_str(raw.get("leaveTypeId")),
        leave_type_name=_as_str(_pick(raw, ("leaveTypeName", "leaveType"))),
        start_date=_as_date(raw.get("startDate")),
        end_date=_as_date(raw.get("endDate")),
        number_of_days=_as_float(_pick(raw, ("numberOfDays", "days"), 0)),
        reason=_as_optional_str(raw.get("reason")),
        status=map_status(raw.get("status")),
        reviewed_by=_as_optional_str(_pick(raw, ("reviewedBy", "approverId"))),
        reviewed_at=_as_optional_str(_pick(raw, ("reviewedAt", "approvedAt", "rejectedAt"))),
        reviewer_comment=_as_optional_str(_pick(raw, ("reviewerComment", "approvalComments"))),
        document_url=_as_optional_str(raw.get("documentUrl")) or _first_document(raw),
        created_at=_as_optional_str(_pick(raw, ("createdAt", "submittedAt"))),
        updated_at=_as_optional_str(raw.get("updatedAt")),
    )


def map_leave_balance(raw: Mapping[str, Any]) -> LeaveBalance:
    """
    Map a leave balance.

    totalAllocated -> totalDays, carriedOverDays -> carryoverDays.
    """
    return LeaveBalance(
        id=_as_str(raw.get("id")),
        user_id=_as_str(_pick(raw, ("userId", "employeeId"))),
        leave_type_id=_as_str(raw.get("leaveTypeId")),
        leave_type_name=_as_str(_pick(raw, ("leaveTypeName", "leaveType"))),
        year=_as_optional_int(raw.get("year")),
        total_allocated=_as_float(_pick(raw, ("totalAllocated", "totalDays"), 0)),
        used_days=_as_float(raw.get("usedDays"), 0),
        pending_days=_as_float(raw.get("pendingDays"), 0),
        available_days=_as_float(raw.get("availableDays"), 0),
        carried_over_days=_as_float(_pick(raw, ("carriedOverDays", "carryoverDays"), 0)),
        accrued_days=_as_float(raw.get("accruedDays"), 0),
        last_accrual_date=_as_optional_str(raw.get("lastAccrualDate")),
    )


def map_leave_type(raw: Mapping[str, Any]) -> LeaveTypeConfig:
    """Map a leave type. annualAllocation -> maxDays."""
    return LeaveTypeConfig(
        id=_as_str(raw.get("id")),
        name=_as_str(raw.get("name")),
        description=_as_optional_str(raw.get("description")),
        annual_allocation=_as_float(_pick(raw, ("annualAllocation", "maxDays"), 0)),
        accrual_rate=_as_float(raw.get("accrualRate"), 0),
        requires_document=bool(raw.get("requiresDocument", False)),
        requires_reason=bool(raw.get("requiresReason", False)),
        max_carryover_days=_as_optional_float(raw.get("maxCarryoverDays")),
        carryover_expiry_month=_as_optional_int(raw.get("carryoverExpiryMonth")),
        carryover_expiry_day=_as_optional_int(raw.get("carryoverExpiryDay")),
        is_active=bool(_pick(raw, ("isActive", "active"), True)),
    )


def map_public_holiday(raw: Mapping[str, Any]) -> PublicHoliday:
    return PublicHoliday(
        id=_as_str(raw.get("id")),
        name=_as_str(raw.get("name")),
        date=_as_date(raw.get("date")),
        year=_as_optional_int(raw.get("year")),
        description=_as_optional_str(raw.get("description")),
        is_recurring=bool(_pick(raw, ("isRecurring", "recurring"), False)),
    )


def map_balance_adjustment(raw: Mapping[str, Any]) -> BalanceAdjustment:
    return BalanceAdjustment(
        id=_as_str(raw.get("id")),
        leave_balance_id=_as_str(raw.get("leaveBalanceId")),
        adjusted_by=_as_optional_str(raw.get("adjustedBy")),
        adjustment_amount=_as_float(raw.get("adjustmentAmount"), 0),
        reason=_as_str(raw.get("reason")),
        previous_balance=_as_optional_float(raw.get("previousBalance")),
        new_balance=_as_optional_float(raw.get("newBalance")),
        created_at=_as_optional_str(raw.get("createdAt")),
    )


# =============================================================================
# Collections
# =============================================================================


def map_list(raw: Any, mapper: Callable[[Mapping[str, Any]], T]) -> list[T]:
    """Map a bare list, or the content of a page, item by item."""
    if isinstance(raw, Mapping):
        raw = raw.get("content", [])
    if not isinstance(raw, list):
        return []
    return [mapper(item) for item in raw if isinstance(item, Mapping)]


def map_page(raw: Any, mapper: Callable[[Mapping[str, Any]], T]) -> Page[T]:
    """
    Map a paginated collection.

    Page metadata precedence: page -> number -> pageable.pageNumber and
    size -> pageable.pageSize. A bare list becomes a single page.
    """
    content = map_list(raw, mapper)
    if not isinstance(raw, Mapping):
        return Page(
            content=content,
            page=0,
            size=len(content),
            total_elements=len(content),
            total_pages=1 if content else 0,
        )

    pageable = raw.get("pageable")
    pageable = pageable if isinstance(pageable, Mapping) else {}

    page_number = _pick(raw, ("page", "number"))
    if page_number is None:
        page_number = pageable.get("pageNumber", 0)
    size = _pick(raw, ("size",))
    if size is None:
        size = pageable.get("pageSize", len(content))

    return Page(
        content=content,
        page=_as_optional_int(page_number) or 0,
        size=_as_optional_int(size) or 0,
        total_elements=_as_optional_int(_pick(raw, ("totalElements",), len(content))) or 0,
        total_pages=_as_optional_int(_pick(raw, ("totalPages",), 1 if content else 0)) or 0,
    )
