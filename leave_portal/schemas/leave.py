"""
Leave Schemas.

Internal shapes for leave applications, balances, leave types, public
holidays and paginated collections. Instances are built by
leave_portal.services.mapping from backend payloads; the legacy alias
properties keep older templates and scripts working.
"""

import datetime as dt
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import Field, computed_field

from leave_portal.schemas.auth import CamelModel

T = TypeVar("T")


class LeaveStatus(str, Enum):
    """Lifecycle status of a leave application."""

    REQUESTED = "REQUESTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


# Only these can still be reviewed or cancelled; everything else is terminal.
REVIEWABLE_STATUSES = frozenset({LeaveStatus.REQUESTED, LeaveStatus.PENDING})


class ReviewDecision(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class LeaveApplication(CamelModel):
    """A leave request as displayed by the portal."""

    id: str
    user_id: str = ""
    employee_name: Optional[str] = None
    leave_type_id: str = ""
    leave_type_name: str = ""
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    number_of_days: float = 0
    reason: Optional[str] = None
    status: LeaveStatus = LeaveStatus.UNKNOWN
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    reviewer_comment: Optional[str] = None
    document_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @computed_field
    @property
    def is_reviewable(self) -> bool:
        return self.status in REVIEWABLE_STATUSES

    # --- Legacy aliases ---

    @computed_field
    @property
    def days(self) -> float:
        return self.number_of_days

    @computed_field
    @property
    def employee_id(self) -> str:
        return self.user_id

    @computed_field
    @property
    def submitted_at(self) -> Optional[str]:
        return self.created_at

    @computed_field
    @property
    def documents(self) -> Optional[list[str]]:
        return [self.document_url] if self.document_url else None

    @computed_field
    @property
    def approver_id(self) -> Optional[str]:
        return self.reviewed_by

    @computed_field
    @property
    def approval_comments(self) -> Optional[str]:
        return self.reviewer_comment

    @computed_field
    @property
    def approved_at(self) -> Optional[str]:
        return self.reviewed_at if self.status == LeaveStatus.APPROVED else None

    @computed_field
    @property
    def rejected_at(self) -> Optional[str]:
        return self.reviewed_at if self.status == LeaveStatus.REJECTED else None


class LeaveBalance(CamelModel):
    """Server-computed balance for one (user, leave type, year)."""

    id: str = ""
    user_id: str = ""
    leave_type_id: str = ""
    leave_type_name: str = ""
    year: Optional[int] = None
    total_allocated: float = 0
    used_days: float = 0
    pending_days: float = 0
    available_days: float = 0
    carried_over_days: float = 0
    accrued_days: float = 0
    last_accrual_date: Optional[str] = None

    @computed_field
    @property
    def total_days(self) -> float:
        return self.total_allocated

    @computed_field
    @property
    def carryover_days(self) -> float:
        return self.carried_over_days


class LeaveTypeConfig(CamelModel):
    """Admin-managed leave category."""

    id: str
    name: str = ""
    description: Optional[str] = None
    annual_allocation: float = 0
    accrual_rate: float = 0
    requires_document: bool = False
    requires_reason: bool = False
    max_carryover_days: Optional[float] = None
    carryover_expiry_month: Optional[int] = None
    carryover_expiry_day: Optional[int] = None
    is_active: bool = True

    @computed_field
    @property
    def max_days(self) -> float:
        return self.annual_allocation


class PublicHoliday(CamelModel):
    id: str
    name: str = ""
    date: Optional[dt.date] = None
    year: Optional[int] = None
    description: Optional[str] = None
    is_recurring: bool = False


class BalanceAdjustment(CamelModel):
    """One manual change applied to a leave balance."""

    id: str = ""
    leave_balance_id: str = ""
    adjusted_by: Optional[str] = None
    adjustment_amount: float = 0
    reason: str = ""
    previous_balance: Optional[float] = None
    new_balance: Optional[float] = None
    created_at: Optional[str] = None


class Page(CamelModel, Generic[T]):
    """One page of a backend collection."""

    content: list[T] = Field(default_factory=list)
    page: int = 0
    size: int = 0
    total_elements: int = 0
    total_pages: int = 0


class DownloadedFile(CamelModel):
    """Binary payload returned by a report endpoint."""

    filename: str
    content_type: str
    content: bytes


# =============================================================================
# Request bodies accepted by the portal
# =============================================================================


class LeaveApplicationDraft(CamelModel):
    """
    Leave application form before validation.

    Every field is optional so that missing values surface as portal
    validation messages instead of schema errors.
    """

    leave_type_id: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    reason: Optional[str] = None


class ReviewRequest(CamelModel):
    decision: ReviewDecision
    comment: Optional[str] = None


class LeaveRequestFilter(CamelModel):
    """Filter for the admin leave request search."""

    status: Optional[LeaveStatus] = None
    leave_type_id: Optional[str] = None
    user_id: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None

    def to_backend(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LeaveTypeCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    annual_allocation: Optional[float] = None
    accrual_rate: Optional[float] = None
    requires_document: bool = False
    requires_reason: bool = False
    max_carryover_days: Optional[float] = None
    carryover_expiry_month: Optional[int] = Field(None, ge=1, le=12)
    carryover_expiry_day: Optional[int] = Field(None, ge=1, le=31)


class LeaveTypeUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    annual_allocation: Optional[float] = None
    accrual_rate: Optional[float] = None
    requires_document: Optional[bool] = None
    requires_reason: Optional[bool] = None
    max_carryover_days: Optional[float] = None
    carryover_expiry_month: Optional[int] = Field(None, ge=1, le=12)
    carryover_expiry_day: Optional[int] = Field(None, ge=1, le=31)
    is_active: Optional[bool] = None


class PublicHolidayCreate(CamelModel):
    name: str = Field(..., min_length=1)
    date: dt.date
    description: Optional[str] = None
    is_recurring: bool = False


class PublicHolidayUpdate(CamelModel):
    name: Optional[str] = None
    date: Optional[dt.date] = None
    description: Optional[str] = None
    is_recurring: Optional[bool] = None


class BalanceAdjustmentRequest(CamelModel):
    adjustment_amount: float
    reason: str = ""


class DashboardResponse(CamelModel):
    """Everything the dashboard page shows, fetched in one round."""

    balances: list[LeaveBalance] = Field(default_factory=list)
    recent_applications: list[LeaveApplication] = Field(default_factory=list)
    upcoming_holidays: list[PublicHoliday] = Field(default_factory=list)
    colleagues_on_leave: list[LeaveApplication] = Field(default_factory=list)
    next_working_day: Optional[dt.date] = None


class LeaveDocument(CamelModel):
    """A supporting document attached to a leave application."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)
