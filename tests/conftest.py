"""
Pytest Configuration and Shared Fixtures.

Provides a scriptable fake of the leave management REST API (served
through httpx.MockTransport) and the portal objects wired against it.
"""

import os
import tempfile

# Logs of the module-level app go to a throwaway directory.
os.environ.setdefault("LEAVE_PORTAL_LOG_DIR", tempfile.mkdtemp(prefix="leave-portal-logs-"))

import json
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio

from leave_portal.clients.auth import AuthApi
from leave_portal.clients.base import BackendClient
from leave_portal.clients.leave import LeaveApi
from leave_portal.clients.users import UsersApi
from leave_portal.core.config import PortalSettings
from leave_portal.services.session import MemorySessionPersistence, SessionStore

BACKEND_URL = "http://backend.test/api/v1"
BACKEND_PREFIX = "/api/v1"
TEST_SECURITY_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


# =============================================================================
# Payload Builders
# =============================================================================


def envelope(data: Any, message: str = "Success", status: str = "OK") -> dict[str, Any]:
    """Wrap a payload in the backend's {message, status, data} envelope."""
    return {"message": message, "status": status, "data": data}


def page_of(items: list[Any], page: int = 0, size: int = 10) -> dict[str, Any]:
    return {
        "content": items,
        "page": page,
        "size": size,
        "totalElements": len(items),
        "totalPages": 1 if items else 0,
    }


def user_payload(
    user_id: str = "u-1",
    email: str = "a@b.com",
    full_name: str = "Ada Lovelace",
    role: str = "STAFF",
    two_factor_enabled: bool = False,
) -> dict[str, Any]:
    return {
        "id": user_id,
        "email": email,
        "fullName": full_name,
        "roles": [{"id": "r-1", "name": role, "description": role.title()}],
        "twoFactorEnabled": two_factor_enabled,
    }


def leave_request_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "id": "lr-1",
        "userId": "u-1",
        "leaveTypeId": "lt-annual",
        "leaveTypeName": "Annual Leave",
        "startDate": "2025-03-10",
        "endDate": "2025-03-12",
        "numberOfDays": 3,
        "reason": "Family trip",
        "status": "PENDING",
        "createdAt": "2025-03-01T09:00:00",
        "updatedAt": "2025-03-01T09:00:00",
    }
    payload.update(overrides)
    return payload


def leave_type_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "id": "lt-annual",
        "name": "Annual Leave",
        "description": "Paid annual leave",
        "annualAllocation": 20,
        "accrualRate": 1.67,
        "requiresDocument": False,
        "requiresReason": False,
        "maxCarryoverDays": 5,
        "carryoverExpiryMonth": 3,
        "carryoverExpiryDay": 31,
        "isActive": True,
    }
    payload.update(overrides)
    return payload


def login_payload(token: str = "jwt-token", user: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    return envelope(
        {"accessToken": token, "tokenType": "Bearer", "user": user or user_payload()},
        message="Login successful",
    )


# =============================================================================
# Fake Backend
# =============================================================================


class FakeBackend:
    """
    Scriptable stand-in for the REST API.

    Routes are keyed by (method, path) with the /api/v1 prefix removed.
    Unrouted requests answer 404. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if content is not None:
                return httpx.Response(status, content=content, headers=headers)
            if json_body is None:
                return httpx.Response(status, headers=headers)
            return httpx.Response(status, json=json_body, headers=headers)

        self.routes[(method.upper(), path)] = respond

    def add_handler(
        self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]
    ) -> None:
        self.routes[(method.upper(), path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(BACKEND_PREFIX):
            path = path[len(BACKEND_PREFIX):]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        return route(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == BACKEND_PREFIX + path
        ]

    @staticmethod
    def json_of(request: httpx.Request) -> Any:
        return json.loads(request.content.decode("utf-8"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> PortalSettings:
    return PortalSettings(
        backend_url=BACKEND_URL,
        security_key=TEST_SECURITY_KEY,
        base_url="https://portal.test",
        debug=False,
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def http_client(fake_backend):
    async with httpx.AsyncClient(base_url=BACKEND_URL, transport=fake_backend.transport()) as client:
        yield client


@pytest.fixture
def persistence() -> MemorySessionPersistence:
    return MemorySessionPersistence()


@pytest.fixture
def backend(http_client, persistence) -> BackendClient:
    return BackendClient(http_client, persistence)


@pytest.fixture
def auth_api(backend) -> AuthApi:
    return AuthApi(backend)


@pytest.fixture
def users_api(backend) -> UsersApi:
    return UsersApi(backend)


@pytest.fixture
def leave_api(backend) -> LeaveApi:
    return LeaveApi(backend)


@pytest.fixture
def session(persistence, auth_api) -> SessionStore:
    return SessionStore(persistence, auth_api)
