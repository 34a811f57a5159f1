"""
Admin Router.

Administrator endpoints: users, leave type configuration, balance
adjustments, public holidays, the filtered request search and report
downloads. Every route requires the ADMIN role.
"""

import datetime as dt
import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Response

from leave_portal.core.dependencies import (
    AdminUserDep,
    LeaveApiDep,
    SubmissionGuardDep,
    UsersApiDep,
    WorkflowDep,
    require_admin,
)
from leave_portal.core.exceptions import ValidationError
from leave_portal.schemas.auth import User
from leave_portal.schemas.leave import (
    BalanceAdjustment,
    BalanceAdjustmentRequest,
    LeaveApplication,
    LeaveBalance,
    LeaveRequestFilter,
    LeaveStatus,
    LeaveTypeConfig,
    LeaveTypeCreate,
    LeaveTypeUpdate,
    Page,
    PublicHoliday,
    PublicHolidayCreate,
    PublicHolidayUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

PageQuery = Annotated[Optional[int], Query(ge=0)]
SizeQuery = Annotated[Optional[int], Query(ge=1, le=500)]
YearQuery = Annotated[Optional[int], Query(ge=1900, le=9999)]

# Profile fields an administrator may change from the portal.
EDITABLE_USER_FIELDS = frozenset({"firstName", "lastName", "fullName", "email", "managerId", "roles"})


# =============================================================================
# Users
# =============================================================================


@router.get("/users", response_model=list[User])
async def list_users(users: UsersApiDep) -> list[User]:
    return await users.list_users()


@router.get("/users/{user_id}", response_model=User)
async def get_user(user_id: str, users: UsersApiDep) -> User:
    return await users.get_user(user_id)


@router.patch("/users/{user_id}", response_model=User)
async def update_user(
    user_id: str,
    admin: AdminUserDep,
    users: UsersApiDep,
    changes: Annotated[dict[str, Any], Body()],
) -> User:
    """Change profile fields. Unknown fields are refused before anything is sent."""
    unknown = sorted(set(changes) - EDITABLE_USER_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be changed: {', '.join(unknown)}", field=unknown[0])
    if not changes:
        raise ValidationError("Nothing to update")
    updated = await users.update_user(user_id, changes)
    logger.info(f"User {user_id} updated by admin {admin.id}: {sorted(changes)}")
    return updated


# =============================================================================
# Leave Types
# =============================================================================


@router.get("/leave-types", response_model=Page[LeaveTypeConfig])
async def list_leave_types(
    leave: LeaveApiDep,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[LeaveTypeConfig]:
    return await leave.list_leave_types(page=page, size=size)


@router.post("/leave-types", response_model=LeaveTypeConfig, status_code=201)
async def create_leave_type(
    data: LeaveTypeCreate,
    admin: AdminUserDep,
    leave: LeaveApiDep,
    guard: SubmissionGuardDep,
) -> LeaveTypeConfig:
    async with guard.hold(f"{admin.id}:create-leave-type"):
        created = await leave.create_leave_type(data)
    logger.info(f"Leave type {created.id} ({created.name}) created by admin {admin.id}")
    return created


@router.get("/leave-types/{leave_type_id}", response_model=LeaveTypeConfig)
async def get_leave_type(leave_type_id: str, leave: LeaveApiDep) -> LeaveTypeConfig:
    return await leave.get_leave_type(leave_type_id)


@router.put("/leave-types/{leave_type_id}", response_model=LeaveTypeConfig)
async def update_leave_type(
    leave_type_id: str,
    data: LeaveTypeUpdate,
    admin: AdminUserDep,
    leave: LeaveApiDep,
) -> LeaveTypeConfig:
    updated = await leave.update_leave_type(leave_type_id, data)
    logger.info(f"Leave type {leave_type_id} updated by admin {admin.id}")
    return updated


@router.delete("/leave-types/{leave_type_id}", status_code=204)
async def delete_leave_type(leave_type_id: str, admin: AdminUserDep, leave: LeaveApiDep) -> None:
    await leave.delete_leave_type(leave_type_id)
    logger.info(f"Leave type {leave_type_id} deleted by admin {admin.id}")


# =============================================================================
# Leave Balances
# =============================================================================


@router.get("/users/{user_id}/balances", response_model=Page[LeaveBalance])
async def get_user_balances(
    user_id: str,
    leave: LeaveApiDep,
    year: YearQuery = None,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[LeaveBalance]:
    return await leave.user_balances(user_id, year=year, page=page, size=size)


@router.post("/users/{user_id}/balances/initialize", status_code=204)
async def initialize_user_balances(
    user_id: str,
    admin: AdminUserDep,
    leave: LeaveApiDep,
    guard: SubmissionGuardDep,
    year: Annotated[int, Query(ge=1900, le=9999)],
) -> None:
    """Create the balances of every leave type for one user and year."""
    async with guard.hold(f"{admin.id}:initialize:{user_id}:{year}"):
        await leave.initialize_user_balances(user_id, year)
    logger.info(f"Balances for user {user_id} initialized for {year} by admin {admin.id}")


@router.get("/balances/{balance_id}", response_model=LeaveBalance)
async def get_balance(balance_id: str, leave: LeaveApiDep) -> LeaveBalance:
    return await leave.get_balance(balance_id)


@router.post("/balances/{balance_id}/adjust", response_model=BalanceAdjustment)
async def adjust_balance(
    balance_id: str,
    data: BalanceAdjustmentRequest,
    admin: AdminUserDep,
    workflow: WorkflowDep,
    guard: SubmissionGuardDep,
) -> BalanceAdjustment:
    async with guard.hold(f"{admin.id}:adjust:{balance_id}"):
        return await workflow.adjust_balance(balance_id, data.adjustment_amount, data.reason)


@router.get("/balances/{balance_id}/adjustments", response_model=Page[BalanceAdjustment])
async def get_balance_adjustments(
    balance_id: str,
    leave: LeaveApiDep,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[BalanceAdjustment]:
    return await leave.balance_adjustments(balance_id, page=page, size=size)


# =============================================================================
# Public Holidays
# =============================================================================


@router.get("/public-holidays", response_model=Page[PublicHoliday])
async def list_public_holidays(
    leave: LeaveApiDep,
    year: YearQuery = None,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[PublicHoliday]:
    if year is not None:
        return await leave.public_holidays_by_year(year, page=page, size=size)
    return await leave.list_public_holidays(page=page, size=size or 100)


@router.post("/public-holidays", response_model=PublicHoliday, status_code=201)
async def create_public_holiday(
    data: PublicHolidayCreate,
    admin: AdminUserDep,
    leave: LeaveApiDep,
    guard: SubmissionGuardDep,
) -> PublicHoliday:
    async with guard.hold(f"{admin.id}:create-holiday"):
        created = await leave.create_public_holiday(data)
    logger.info(f"Public holiday {created.id} ({created.date}) created by admin {admin.id}")
    return created


@router.get("/public-holidays/{holiday_id}", response_model=PublicHoliday)
async def get_public_holiday(holiday_id: str, leave: LeaveApiDep) -> PublicHoliday:
    return await leave.get_public_holiday(holiday_id)


@router.put("/public-holidays/{holiday_id}", response_model=PublicHoliday)
async def update_public_holiday(
    holiday_id: str,
    data: PublicHolidayUpdate,
    admin: AdminUserDep,
    leave: LeaveApiDep,
) -> PublicHoliday:
    updated = await leave.update_public_holiday(holiday_id, data)
    logger.info(f"Public holiday {holiday_id} updated by admin {admin.id}")
    return updated


@router.delete("/public-holidays/{holiday_id}", status_code=204)
async def delete_public_holiday(holiday_id: str, admin: AdminUserDep, leave: LeaveApiDep) -> None:
    await leave.delete_public_holiday(holiday_id)
    logger.info(f"Public holiday {holiday_id} deleted by admin {admin.id}")


# =============================================================================
# Leave Requests
# =============================================================================


@router.get("/leave-requests", response_model=Page[LeaveApplication])
async def search_leave_requests(
    leave: LeaveApiDep,
    workflow: WorkflowDep,
    status: Annotated[Optional[LeaveStatus], Query()] = None,
    leave_type_id: Annotated[Optional[str], Query(alias="leaveTypeId")] = None,
    user_id: Annotated[Optional[str], Query(alias="userId")] = None,
    start_date: Annotated[Optional[dt.date], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[dt.date], Query(alias="endDate")] = None,
    page: PageQuery = None,
    size: SizeQuery = None,
) -> Page[LeaveApplication]:
    """Search all leave requests."""
    if start_date and end_date and end_date < start_date:
        raise ValidationError("End date cannot be before start date", field="endDate")
    leave_filter = LeaveRequestFilter(
        status=status,
        leave_type_id=leave_type_id,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
    )
    result = await leave.filter_leave_requests(leave_filter, page=page, size=size)
    return result.model_copy(update={"content": await workflow.with_employee_names(result.content)})


# =============================================================================
# Reports
# =============================================================================


@router.get("/reports/{report_format}")
async def download_report(
    report_format: str,
    workflow: WorkflowDep,
    year: YearQuery = None,
    status: Annotated[Optional[LeaveStatus], Query()] = None,
) -> Response:
    """Stream a generated report back as an attachment."""
    report = await workflow.download_report(
        report_format, year=year, status=status.value if status else None
    )
    return Response(
        content=report.content,
        media_type=report.content_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )
