"""
Leave Service.

Drives the leave-request lifecycle the way the portal observes it:

    REQUESTED/PENDING -> APPROVED | REJECTED | CANCELLED   (all terminal)

Every rule that can be checked without the backend is checked here first,
so an invalid form never produces a request. The backend stays the
authority: its answer wins whenever the two disagree.
"""

import asyncio
import datetime as dt
import logging
import time
from typing import Any, Optional

from leave_portal.clients.leave import REPORT_FORMATS, LeaveApi
from leave_portal.clients.users import UserDirectory
from leave_portal.core.exceptions import (
    AuthenticationExpiredError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from leave_portal.schemas.auth import User
from leave_portal.schemas.leave import (
    BalanceAdjustment,
    DashboardResponse,
    DownloadedFile,
    LeaveApplication,
    LeaveApplicationDraft,
    LeaveDocument,
    LeaveTypeConfig,
    Page,
    ReviewDecision,
)
from leave_portal.utils.dates import calculate_days, is_date_in_range, next_business_day

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024  # 10 MB

ALLOWED_DOCUMENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/jpeg",
    "image/jpg",
    "image/png",
})

REPORT_MEDIA_TYPES = {
    "excel": ("xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    "csv": ("csv", "text/csv"),
}

DASHBOARD_RECENT_LIMIT = 5
DASHBOARD_HOLIDAY_LIMIT = 5


# =============================================================================
# Pre-flight validation
# =============================================================================


def validate_document_size(filename: str, size: int) -> None:
    if size > MAX_DOCUMENT_BYTES:
        raise ValidationError(
            f"{filename or 'File'} is too large. Maximum file size is 10 MB.",
            field="document",
        )


def validate_document(filename: str, content_type: Optional[str], size: int) -> None:
    """
    Advisory checks on an attachment before upload.

    Raises:
        ValidationError: File too large or of a type other than PDF, DOC,
            DOCX, JPEG or PNG.
    """
    validate_document_size(filename, size)
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type not in ALLOWED_DOCUMENT_TYPES:
        raise ValidationError(
            "Invalid file type. Only PDF, DOC, DOCX, JPEG and PNG files are allowed.",
            field="document",
        )


def validate_draft(draft: LeaveApplicationDraft) -> int:
    """
    Check the fields every application needs.

    Returns:
        The inclusive day count.
    """
    if not draft.leave_type_id:
        raise ValidationError("Please select a leave type", field="leaveTypeId")
    if draft.start_date is None:
        raise ValidationError("Start date is required", field="startDate")
    if draft.end_date is None:
        raise ValidationError("End date is required", field="endDate")
    if draft.end_date < draft.start_date:
        raise ValidationError("End date cannot be before start date", field="endDate")

    days = calculate_days(draft.start_date, draft.end_date)
    if days <= 0:
        raise ValidationError("Leave must cover at least one day", field="endDate")
    return days


def validate_requirements(
    draft: LeaveApplicationDraft,
    leave_type: LeaveTypeConfig,
    document: Optional[LeaveDocument] = None,
) -> None:
    """Apply the conditional rules configured on the leave type."""
    if not leave_type.is_active:
        raise ValidationError(
            f"{leave_type.name or 'This leave type'} is no longer available",
            field="leaveTypeId",
        )
    if leave_type.requires_reason and not (draft.reason or "").strip():
        raise ValidationError(
            f"A reason is required for {leave_type.name or 'this leave type'}",
            field="reason",
        )
    if document is not None:
        validate_document(document.filename, document.content_type, document.size)
    elif leave_type.requires_document:
        raise ValidationError(
            f"A supporting document is required for {leave_type.name or 'this leave type'}",
            field="document",
        )


def validate_application(
    draft: LeaveApplicationDraft,
    leave_type: Optional[LeaveTypeConfig] = None,
    document: Optional[LeaveDocument] = None,
) -> int:
    """
    Full pre-flight check of a leave application.

    Returns:
        The inclusive day count.

    Raises:
        ValidationError: The first rule that fails.
    """
    days = validate_draft(draft)
    if leave_type is not None:
        validate_requirements(draft, leave_type, document)
    elif document is not None:
        validate_document(document.filename, document.content_type, document.size)
    return days


def report_filename(report_format: str, now: Optional[float] = None) -> str:
    """``leave-report-<epoch ms>.<ext>``"""
    extension, _ = REPORT_MEDIA_TYPES[report_format]
    millis = int((time.time() if now is None else now) * 1000)
    return f"leave-report-{millis}.{extension}"


# =============================================================================
# Workflow
# =============================================================================


class LeaveWorkflow:
    """
    Leave operations on behalf of the signed-in user.

    Args:
        leave: Leave API client.
        user: Current user; decides which actions are offered.
        directory: Optional name lookup used to label other people's requests.
    """

    def __init__(
        self,
        leave: LeaveApi,
        user: User,
        directory: Optional[UserDirectory] = None,
    ) -> None:
        self._leave = leave
        self._user = user
        self._directory = directory

    @property
    def user(self) -> User:
        return self._user

    def _require_reviewer(self) -> None:
        if not self._user.can_review:
            raise PermissionDeniedError("Only managers and administrators can review leave requests")

    def _require_admin(self) -> None:
        if not self._user.is_admin:
            raise PermissionDeniedError("Only administrators can perform this action")

    async def _fetch_owned_open_request(self, request_id: str) -> LeaveApplication:
        current = await self._leave.get_leave_request(request_id)
        if current.user_id != self._user.id:
            raise PermissionDeniedError("You can only change your own leave requests")
        if not current.is_reviewable:
            raise InvalidStateError(f"Leave request is already {current.status.value.lower()}")
        return current

    # --- Applying ---

    async def apply(
        self,
        draft: LeaveApplicationDraft,
        document: Optional[LeaveDocument] = None,
    ) -> LeaveApplication:
        """
        Submit a new leave application.

        Date and field checks run before anything is sent; the leave type
        is then fetched so its reason/document requirements can be applied.
        """
        days = validate_draft(draft)
        leave_type = await self._leave.get_leave_type(draft.leave_type_id)
        validate_requirements(draft, leave_type, document)

        created = await self._leave.create_leave_request(
            draft.leave_type_id,
            draft.start_date,
            draft.end_date,
            reason=(draft.reason or "").strip() or None,
            document=document,
        )
        logger.info(
            f"Leave request {created.id} submitted by user {self._user.id} "
            f"({leave_type.name}, {days} day(s))"
        )
        return created

    async def update(
        self,
        request_id: str,
        draft: LeaveApplicationDraft,
        document: Optional[LeaveDocument] = None,
    ) -> LeaveApplication:
        """Edit an own application that has not been reviewed yet."""
        validate_draft(draft)
        await self._fetch_owned_open_request(request_id)
        leave_type = await self._leave.get_leave_type(draft.leave_type_id)
        validate_requirements(draft, leave_type, document)

        updated = await self._leave.update_leave_request(
            request_id,
            draft.leave_type_id,
            draft.start_date,
            draft.end_date,
            reason=(draft.reason or "").strip() or None,
            document=document,
        )
        logger.info(f"Leave request {request_id} updated by user {self._user.id}")
        return updated

    async def cancel(self, request_id: str) -> None:
        """Cancel an own application while it is still reviewable."""
        await self._fetch_owned_open_request(request_id)
        await self._leave.cancel_leave_request(request_id)
        logger.info(f"Leave request {request_id} cancelled by user {self._user.id}")

    # --- Reviewing ---

    async def review(
        self,
        request_id: str,
        decision: ReviewDecision,
        comment: Optional[str] = None,
    ) -> LeaveApplication:
        """
        Approve or reject a pending application.

        The application is fetched again first; a request that is no longer
        REQUESTED/PENDING cannot be reviewed a second time.

        Raises:
            PermissionDeniedError: The user is not a manager or admin.
            ValidationError: Rejection without a comment. No request is sent.
            InvalidStateError: The application is no longer reviewable.
        """
        self._require_reviewer()
        comment = (comment or "").strip() or None
        if decision == ReviewDecision.REJECT and comment is None:
            raise ValidationError("Comments are required when rejecting a leave request", field="comment")

        current = await self._leave.get_leave_request(request_id)
        if not current.is_reviewable:
            raise InvalidStateError(f"Leave request is already {current.status.value.lower()}")

        reviewed = await self._leave.review_leave_request(request_id, decision, comment)
        outcome = "approved" if decision == ReviewDecision.APPROVE else "rejected"
        logger.info(f"Leave request {request_id} {outcome} by user {self._user.id}")
        return reviewed

    async def pending_approvals(
        self, page: Optional[int] = None, size: Optional[int] = None
    ) -> Page[LeaveApplication]:
        """Pending requests, labelled with the requesters' names."""
        self._require_reviewer()
        result = await self._leave.pending_leave_requests(page=page, size=size)
        return result.model_copy(update={"content": await self.with_employee_names(result.content)})

    async def with_employee_names(self, applications: list[LeaveApplication]) -> list[LeaveApplication]:
        """Fill in employee_name where the backend left it out."""
        if self._directory is None:
            return applications
        missing = [app.user_id for app in applications if not app.employee_name and app.user_id]
        if not missing:
            return applications
        names = await self._directory.resolve(missing)
        return [
            app if app.employee_name else app.model_copy(update={"employee_name": names.get(app.user_id)})
            for app in applications
        ]

    # --- Balances ---

    async def adjust_balance(
        self, balance_id: str, adjustment_amount: float, reason: str
    ) -> BalanceAdjustment:
        """Manually change a balance. Admins only."""
        self._require_admin()
        if not adjustment_amount:
            raise ValidationError("Adjustment amount must not be zero", field="adjustmentAmount")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required for balance adjustments", field="reason")

        adjustment = await self._leave.adjust_balance(balance_id, adjustment_amount, reason)
        logger.info(
            f"Balance {balance_id} adjusted by {adjustment_amount:+g} day(s) by user {self._user.id}"
        )
        return adjustment

    # --- Dashboard ---

    async def dashboard(self, today: Optional[dt.date] = None) -> DashboardResponse:
        """
        Fetch every dashboard panel concurrently.

        A failing panel is logged and left empty; an expired session still
        ends the whole request. Colleagues whose recorded range does not
        cover today are dropped.
        """
        today = today or dt.date.today()
        results = await asyncio.gather(
            self._leave.my_balances(size=100),
            self._leave.my_leave_requests(size=10),
            self._leave.list_public_holidays(size=100),
            self._leave.currently_on_leave(),
            return_exceptions=True,
        )
        panels = ("balances", "recent applications", "public holidays", "colleagues on leave")
        contents: list[list[Any]] = []
        for panel, result in zip(panels, results):
            if isinstance(result, AuthenticationExpiredError):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"Dashboard panel '{panel}' failed: {type(result).__name__}: {result}")
                contents.append([])
            elif isinstance(result, BaseException):
                raise result
            else:
                contents.append(result.content)

        balances, recent, holidays, colleagues = contents
        colleagues = [
            a for a in colleagues
            if a.start_date is None or a.end_date is None or is_date_in_range(today, a.start_date, a.end_date)
        ]
        upcoming = sorted(
            (h for h in holidays if h.date is not None and h.date >= today),
            key=lambda h: h.date,
        )[:DASHBOARD_HOLIDAY_LIMIT]

        return DashboardResponse(
            balances=balances,
            recent_applications=recent[:DASHBOARD_RECENT_LIMIT],
            upcoming_holidays=upcoming,
            colleagues_on_leave=await self.with_employee_names(colleagues),
            next_working_day=next_business_day(today),
        )

    # --- Reports ---

    async def download_report(
        self,
        report_format: str,
        year: Optional[int] = None,
        status: Optional[str] = None,
    ) -> DownloadedFile:
        """Download a generated report with a timestamped filename. Admins only."""
        self._require_admin()
        if report_format not in REPORT_FORMATS:
            raise ValidationError(f"Unsupported report format: {report_format}", field="format")

        content, content_type = await self._leave.download_report(report_format, year=year, status=status)
        _, default_type = REPORT_MEDIA_TYPES[report_format]
        if not content_type or content_type.startswith("application/octet-stream"):
            content_type = default_type
        filename = report_filename(report_format)
        logger.info(f"Report {filename} downloaded by user {self._user.id}")
        return DownloadedFile(filename=filename, content_type=content_type, content=content)
