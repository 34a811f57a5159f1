"""
Leave Router.

JSON endpoints for staff and reviewers: applying for leave, the own
request list, the approvals queue, balances and holidays.

Applications are submitted as multipart/form-data so a supporting
document can be attached.
"""

import datetime as dt
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, Query, UploadFile

from leave_portal.core.dependencies import (
    CurrentUserDep,
    LeaveApiDep,
    SubmissionGuardDep,
    WorkflowDep,
)
from leave_portal.core.exceptions import ValidationError
from leave_portal.schemas.leave import (
    DashboardResponse,
    LeaveApplication,
    LeaveApplicationDraft,
    LeaveBalance,
    LeaveDocument,
    LeaveTypeConfig,
    Page,
    PublicHoliday,
    ReviewRequest,
)
from leave_portal.services.leave import MAX_DOCUMENT_BYTES, validate_application, validate_document_size
from leave_portal.utils.dates import parse_date

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/leave", tags=["Leave"])

PageQuery = Annotated[Optional[int], Query(ge=0)]
SizeQuery = Annotated[Optional[int], Query(ge=1, le=500)]


def _parse_form_date(value: Optional[str], field: str) -> Optional[dt.date]:
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(f"{value} is not a valid date (expected YYYY-MM-DD)", field=field) from None


def _build_draft(
    leave_type_id: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    reason: Optional[str],
) -> LeaveApplicationDraft:
    return LeaveApplicationDraft(
        leave_type_id=leave_type_id or None,
        start_date=_parse_form_date(start_date, "startDate"),
        end_date=_parse_form_date(end_date, "endDate"),
        reason=reason,
    )


async def _read_document(upload: Optional[UploadFile]) -> Optional[LeaveDocument]:
    """
    An empty file input arrives as an upload without a filename.

    The declared size is checked before reading, and the read is capped one
    byte past the limit so an oversized body is never held in full.
    """
    if upload is None or not upload.filename:
        return None
    if upload.size is not None:
        validate_document_size(upload.filename, upload.size)
    content = await upload.read(MAX_DOCUMENT_BYTES + 1)
    validate_document_size(upload.filename, len(content))
    return LeaveDocument(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        content=content,
    )


# =============================================================================
# Dashboard
# =============================================================================


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(workflow: WorkflowDep) -> DashboardResponse:
    """Balances, recent requests, upcoming holidays and colleagues on leave."""
    return await workflow.dashboard()


# =============================================================================
# Applying
# =============================================================================


@router.post("/validate")
async def validate_leave_form(
    leave_type_id: Annotated[Optional[str], Form(alias="leaveTypeId")] = None,
    start_date: Annotated[Optional[str], Form(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Form(alias="endDate")] = None,
) -> dict[str, int]:
    """Check dates as the user fills in the form; nothing is sent to the backend."""
    draft = _build_draft(leave_type_id, start_date, end_date, None)
    return {"days": validate_application(draft)}


@router.post("/requests", response_model=LeaveApplication, status_code=201)
async def apply_for_leave(
    user: CurrentUserDep,
    workflow: WorkflowDep,
    guard: SubmissionGuardDep,
    leave_type_id: Annotated[Optional[str], Form(alias="leaveTypeId")] = None,
    start_date: Annotated[Optional[str], Form(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Form(alias="endDate")] = None,
    reason: Annotated[Optional[str], Form()] = None,
    document: Annotated[Optional[UploadFile], File()] = None,
) -> LeaveApplication:
    """Submit a leave application, optionally with a supporting document."""
    draft = _build_draft(leave_type_id, start_date, end_date, reason)
    async with guard.hold(f"{user.id}:apply-leave"):
        return await workflow.apply(draft, await _read_document(document))


@router.put("/requests/{request_id}", response_model=LeaveApplication)
async def update_leave_request(
    request_id: str,
    user: CurrentUserDep,
    workflow: WorkflowDep,
    guard: SubmissionGuardDep,
    leave_type_id: Annotated[Optional[str], Form(alias="leaveTypeId")] = None,
    start_date: Annotated[Optional[str], Form(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Form(alias="endDate")] = None,
    reason: Annotated[Optional[str], Form()] = None,
    document: Annotated[Optional[UploadFile], File()] = None,
) -> LeaveApplication:
    """Edit an own application that is still pending."""
    draft = _build_draft(leave_type_id, start_date, end_date, reason)
    async with guard.hold(f"{user.id}:edit-leave:{request_id}"):
        return await workflow.update(request_id, draft, await _read_document(document))


@router.delete("/requests/{request_id}", status_code=204)
async def cancel_leave_request(
    request_id: str,
    user: CurrentUserDep,
    workflow: WorkflowDep,
    guard: SubmissionGuardDep,
) -> None:
    async with guard.hold(f"{user.id}:cancel-leave:{request_id}"):
        await workflow.cancel(request_id)


# =============================================================================
# Queries
# =============================================================================


@router.get("/requests/my", response_model=Page[LeaveApplication])
async def get_my_requests(
    user: CurrentUserDep,
    leave: LeaveApiDep,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[LeaveApplication]:
    return await leave.my_leave_requests(page=page, size=size)


@router.get("/requests/pending", response_model=Page[LeaveApplication])
async def get_pending_approvals(
    workflow: WorkflowDep,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[LeaveApplication]:
    """Approvals queue for managers and admins."""
    return await workflow.pending_approvals(page=page, size=size)


@router.get("/requests/on-leave", response_model=Page[LeaveApplication])
async def get_currently_on_leave(
    workflow: WorkflowDep,
    leave: LeaveApiDep,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[LeaveApplication]:
    result = await leave.currently_on_leave(page=page, size=size)
    return result.model_copy(update={"content": await workflow.with_employee_names(result.content)})


@router.get("/requests/approved", response_model=Page[LeaveApplication])
async def get_approved_in_range(
    leave: LeaveApiDep,
    start_date: Annotated[dt.date, Query(alias="startDate")],
    end_date: Annotated[dt.date, Query(alias="endDate")],
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[LeaveApplication]:
    if end_date < start_date:
        raise ValidationError("End date cannot be before start date", field="endDate")
    return await leave.approved_in_range(start_date, end_date, page=page, size=size)


@router.get("/requests/{request_id}", response_model=LeaveApplication)
async def get_leave_request(request_id: str, user: CurrentUserDep, leave: LeaveApiDep) -> LeaveApplication:
    return await leave.get_leave_request(request_id)


# =============================================================================
# Reviewing
# =============================================================================


@router.put("/requests/{request_id}/review", response_model=LeaveApplication)
async def review_leave_request(
    request_id: str,
    request: ReviewRequest,
    user: CurrentUserDep,
    workflow: WorkflowDep,
    guard: SubmissionGuardDep,
) -> LeaveApplication:
    """
    Approve or reject a pending request.

    A second review of the same request is refused while the first is in
    flight, and afterwards by the fresh status check.
    """
    async with guard.hold(f"{user.id}:review:{request_id}"):
        return await workflow.review(request_id, request.decision, request.comment)


# =============================================================================
# Reference Data
# =============================================================================


@router.get("/types", response_model=list[LeaveTypeConfig])
async def get_active_leave_types(user: CurrentUserDep, leave: LeaveApiDep) -> list[LeaveTypeConfig]:
    """Leave types offered on the application form."""
    result = await leave.list_active_leave_types()
    return result.content


@router.get("/balances", response_model=Page[LeaveBalance])
async def get_my_balances(
    user: CurrentUserDep,
    leave: LeaveApiDep,
    year: Annotated[Optional[int], Query(ge=1900, le=9999)] = None,
) -> Page[LeaveBalance]:
    return await leave.my_balances(year=year, size=100)


@router.get("/holidays", response_model=Page[PublicHoliday])
async def get_public_holidays(
    user: CurrentUserDep,
    leave: LeaveApiDep,
    year: Annotated[Optional[int], Query(ge=1900, le=9999)] = None,
) -> Page[PublicHoliday]:
    if year is not None:
        return await leave.public_holidays_by_year(year)
    return await leave.list_public_holidays()


@router.get("/holidays/upcoming", response_model=Page[PublicHoliday])
async def get_upcoming_holidays(user: CurrentUserDep, leave: LeaveApiDep) -> Page[PublicHoliday]:
    return await leave.upcoming_public_holidays()
