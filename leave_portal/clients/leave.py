"""
Leave API.

Wraps the leave requests, leave types, leave balances, public holidays and
reports endpoints. Every answer is normalized through
leave_portal.services.mapping; no business rule is evaluated here.
"""

import datetime as dt
import json
import logging
from typing import Any, Optional

from leave_portal.clients.base import BackendClient
from leave_portal.schemas.leave import (
    BalanceAdjustment,
    LeaveApplication,
    LeaveBalance,
    LeaveDocument,
    LeaveRequestFilter,
    LeaveTypeConfig,
    LeaveTypeCreate,
    LeaveTypeUpdate,
    Page,
    PublicHoliday,
    PublicHolidayCreate,
    PublicHolidayUpdate,
    ReviewDecision,
)
from leave_portal.services.mapping import (
    map_balance_adjustment,
    map_leave_application,
    map_leave_balance,
    map_leave_type,
    map_page,
    map_public_holiday,
)

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("excel", "csv")


def _page_params(page: Optional[int], size: Optional[int], **extra: Any) -> dict[str, Any]:
    params = {"page": page, "size": size}
    params.update(extra)
    return {k: v for k, v in params.items() if v is not None}


def _leave_form(
    leave_type_id: str,
    start_date: dt.date,
    end_date: dt.date,
    reason: Optional[str],
) -> dict[str, str]:
    form = {
        "leaveTypeId": leave_type_id,
        "startDate": start_date.isoformat(),
        "endDate": end_date.isoformat(),
    }
    if reason:
        form["reason"] = reason
    return form


def _document_part(document: Optional[LeaveDocument]) -> Optional[dict[str, Any]]:
    if document is None:
        return None
    return {"document": (document.filename, document.content, document.content_type)}


class LeaveApi:
    """Client for everything under the leave management API."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    # =========================================================================
    # Leave Requests
    # =========================================================================

    async def get_leave_request(self, request_id: str) -> LeaveApplication:
        payload = await self._backend.get(f"/leave-requests/{request_id}")
        return map_leave_application(payload or {})

    async def create_leave_request(
        self,
        leave_type_id: str,
        start_date: dt.date,
        end_date: dt.date,
        reason: Optional[str] = None,
        document: Optional[LeaveDocument] = None,
    ) -> LeaveApplication:
        """POST /leave-requests as multipart/form-data."""
        payload = await self._backend.post(
            "/leave-requests",
            data=_leave_form(leave_type_id, start_date, end_date, reason),
            files=_document_part(document),
        )
        return map_leave_application(payload or {})

    async def update_leave_request(
        self,
        request_id: str,
        leave_type_id: str,
        start_date: dt.date,
        end_date: dt.date,
        reason: Optional[str] = None,
        document: Optional[LeaveDocument] = None,
    ) -> LeaveApplication:
        """
        PUT /leave-requests/{id} as multipart/form-data.

        The backend also expects the fields as a JSON ``dto`` query parameter.
        """
        form = _leave_form(leave_type_id, start_date, end_date, reason)
        payload = await self._backend.put(
            f"/leave-requests/{request_id}",
            params={"dto": json.dumps(form)},
            data=form,
            files=_document_part(document),
        )
        return map_leave_application(payload or {})

    async def cancel_leave_request(self, request_id: str) -> None:
        await self._backend.delete(f"/leave-requests/{request_id}")

    async def review_leave_request(
        self,
        request_id: str,
        decision: ReviewDecision,
        comment: Optional[str] = None,
    ) -> LeaveApplication:
        payload = await self._backend.put(
            f"/leave-requests/{request_id}/review",
            json={"decision": decision.value, "comment": comment},
        )
        return map_leave_application(payload or {})

    async def my_leave_requests(
        self, page: Optional[int] = None, size: Optional[int] = None
    ) -> Page[LeaveApplication]:
        payload = await self._backend.get(
            "/leave-requests/my-requests", params=_page_params(page, size)
        )
        return map_page(payload, map_leave_application)

    async def pending_leave_requests(
        self, page: Optional[int] = None, size: Optional[int] = None
    ) -> Page[LeaveApplication]:
        payload = await self._backend.get(
            "/leave-requests/pending", params=_page_params(page, size)
        )
        return map_page(payload, map_leave_application)

    async def filter_leave_requests(
        self,
        leave_filter: LeaveRequestFilter,
        page: Optional[int] = None,
        size: Optional[int] = None,
    ) -> Page[LeaveApplication]:
        """GET /leave-requests/filter with the filter serialized as JSON."""
        payload = await self._backend.get(
            "/leave-requests/filter",
            params=_page_params(page, size, filter=json.dumps(leave_filter.to_backend())),
        )
        return map_page(payload, map_leave_application)

    async def currently_on_leave(
        self, page: Optional[int] = None, size: Optional[int] = None
    ) -> Page[LeaveApplication]:
        payload = await self._backend.get(
            "/leave-requests/currently-on-leave", params=_page_params(page, size)
        )
        return map_page(payload, map_leave_application)

    async def approved_in_range(
        self,
        start_date: dt.date,
        end_date: dt.date,
        page: Optional[int] = None,
        size: Optional[int] = None,
    ) -> Page[LeaveApplication]:
        payload = await self._backend.get(
            "/leave-requests/approved",
            params=_page_params(
                page,
                size,
                startDate=start_date.isoformat(),
                endDate=end_date.isoformat(),
            ),
        )
        return map_page(payload, map_leave_application)

    # =========================================================================
    # Leave Types
    # =========================================================================

    async def get_leave_type(self, leave_type_id: str) -> LeaveTypeConfig:
        payload = await self._backend.get(f"/leave-types/{leave_type_id}")
        return map_leave_type(payload or {})

    async def list_leave_types(
        self, page: Optional[int] = None, size: Optional[int] = None
    ) -> Page[LeaveTypeConfig]:
        payload = await self._backend.get("/leave-types", params=_page_params(page, size))
        return map_page(payload, map_leave_type)

    async def list_active_leave_types(
        self, page: Optional[int] = None, size: Optional[int] = 100
    ) -> Page[LeaveTypeConfig]:
        payload = await self._backend.get(
            "/leave-types/active", params=_page_params(page, size)
        )
        return map_page(payload, map_leave_type)

    async def create_leave_type(self, data: LeaveTypeCreate) -> LeaveTypeConfig:
        payload = await self._backend.post(
            "/leave-types", json=data.model_dump(by_alias=True, exclude_none=True)
        )
        return map_leave_type(payload or {})

    async def update_leave_type(self, leave_type_id: str, data: LeaveTypeUpdate) -> LeaveTypeConfig:
        payload = await self._backend.put(
            f"/leave-types/{leave_type_id}",
            json=data.model_dump(by_alias=True, exclude_none=True),
        )
        return map_leave_type(payload or {})

    async def delete_leave_type(self, leave_type_id: str) -> None:
        await self._backend.delete(f"/leave-types/{leave_type_id}")

    # =========================================================================
    # Leave Balances
    # =========================================================================

    async def get_balance(self, balance_id: str) -> LeaveBalance:
        payload = await self._backend.get(f"/leave-balances/{balance_id}")
        return map_leave_balance(payload or {})

    async def my_balances(
        self,
        year: Optional[int] = None,
        page: Optional[int] = None,
        size: Optional[int] = None,
    ) -> Page[LeaveBalance]:
        payload = await self._backend.get(
            "/leave-balances/my-balances", params=_page_params(page, size, year=year)
        )
        return map_page(payload, map_leave_balance)

    async def user_balances(
        self,
        user_id: str,
        year: Optional[int] = None,
        page: Optional[int] = None,
        size: Optional[int] = None,
    ) -> Page[LeaveBalance]:
        payload = await self._backend.get(
            f"/leave-balances/users/{user_id}", params=_page_params(page, size, year=year)
        )
        return map_page(payload, map_leave_balance)

    async def adjust_balance(
        self, balance_id: str, adjustment_amount: float, reason: str
    ) -> BalanceAdjustment:
        payload = await self._backend.post(
            f"/leave-balances/{balance_id}/adjust",
            json={"adjustmentAmount": adjustment_amount, "reason": reason},
        )
        return map_balance_adjustment(payload or {})

    async def balance_adjustments(
        self,
        balance_id: str,
        page: Optional[int] = None,
        size: Optional[int] = None,
    ) -> Page[BalanceAdjustment]:
        payload = await self._backend.get(
            f"/leave-balances/{balance_id}/adjustments", params=_page_params(page, size)
        )
        return map_page(payload, map_balance_adjustment)

    async def initialize_user_balances(self, user_id: str, year: int) -> None:
        await self._backend.post(
            f"/leave-balances/users/{user_id}/initialize", params={"year": year}
        )

    # =========================================================================
    # Public Holidays
    # =========================================================================

    async def get_public_holiday(self, holiday_id: str) -> PublicHoliday:
        payload = await self._backend.get(f"/public-holidays/{holiday_id}")
        return map_public_holiday(payload or {})

    async def list_public_holidays(
        self, page: Optional[int] = None, size: Optional[int] = 100
    ) -> Page[PublicHoliday]:
        payload = await self._backend.get("/public-holidays", params=_page_params(page, size))
        return map_page(payload, map_public_holiday)

    async def public_holidays_by_year(
        self,
        year: int,
        page: Optional[int] = None,
        size: Optional[int] = None,
    ) -> Page[PublicHoliday]:
        payload = await self._backend.get(
            f"/public-holidays/year/{year}", params=_page_params(page, size)
        )
        return map_page(payload, map_public_holiday)

    async def upcoming_public_holidays(
        self, page: Optional[int] = None, size: Optional[int] = None
    ) -> Page[PublicHoliday]:
        payload = await self._backend.get(
            "/public-holidays/upcoming", params=_page_params(page, size)
        )
        return map_page(payload, map_public_holiday)

    async def create_public_holiday(self, data: PublicHolidayCreate) -> PublicHoliday:
        payload = await self._backend.post(
            "/public-holidays",
            json=data.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return map_public_holiday(payload or {})

    async def update_public_holiday(
        self, holiday_id: str, data: PublicHolidayUpdate
    ) -> PublicHoliday:
        payload = await self._backend.put(
            f"/public-holidays/{holiday_id}",
            json=data.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return map_public_holiday(payload or {})

    async def delete_public_holiday(self, holiday_id: str) -> None:
        await self._backend.delete(f"/public-holidays/{holiday_id}")

    # =========================================================================
    # Reports
    # =========================================================================

    async def download_report(
        self,
        report_format: str,
        year: Optional[int] = None,
        status: Optional[str] = None,
    ) -> tuple[bytes, str]:
        """
        GET /reports/leave-requests/{excel|csv}.

        Returns:
            Tuple of (content bytes, content type).
        """
        if report_format not in REPORT_FORMATS:
            raise ValueError(f"Unsupported report format: {report_format}")
        return await self._backend.download(
            f"/reports/leave-requests/{report_format}",
            params={"year": year, "status": status},
        )
