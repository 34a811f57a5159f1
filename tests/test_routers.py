"""
Tests for the HTTP surface of the portal.

The app is created against the fake backend transport and driven with
FastAPI's TestClient, cookies included.
"""

import datetime as dt

import pytest
from fastapi.testclient import TestClient

from leave_portal.main import create_app
from leave_portal.services.leave import MAX_DOCUMENT_BYTES
from leave_portal.utils.dates import format_date
from tests.conftest import envelope, leave_request_payload, leave_type_payload, login_payload, page_of, user_payload


@pytest.fixture
def app(settings, fake_backend):
    return create_app(settings, transport=fake_backend.transport())


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def sign_in(client, app, fake_backend, role="STAFF", user_id="u-1"):
    """Give the client a valid token cookie for a user with ``role``."""
    fake_backend.add("GET", "/users/me", json_body=envelope(user_payload(user_id=user_id, role=role)))
    client.cookies.set("token", app.state.cookie_sealer.seal("jwt-token", "token"))


def set_cookies(response) -> list[str]:
    return response.headers.get_list("set-cookie")


class TestCoreRoutes:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "Leave Portal", "backend_client": True}

    def test_security_headers(self, client):
        response = client.get("/health")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestLoginApi:
    """Tests for the login sequence over HTTP."""

    def test_two_factor_login(self, client, fake_backend):
        fake_backend.add(
            "POST",
            "/auth/login",
            json_body=envelope({"requiresTwoFactor": True}, message="2FA required"),
        )
        fake_backend.add("POST", "/auth/verify-2fa", json_body=login_payload(token="jwt-token"))
        fake_backend.add("GET", "/users/me", json_body=envelope(user_payload()))

        response = client.post("/api/auth/login", json={"email": "a@b.com", "password": "x"})

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "TWO_FACTOR_PENDING"
        assert body["authenticated"] is False
        assert body["pendingEmail"] == "a@b.com"
        assert body["message"] == "2FA required"
        assert any(c.startswith("pending_2fa=") for c in set_cookies(response))
        assert "a@b.com" not in response.headers.get("set-cookie", "")

        response = client.post("/api/auth/verify-2fa", json={"code": "123456"})

        body = response.json()
        assert body["state"] == "AUTHENTICATED"
        assert body["authenticated"] is True
        assert body["redirect"] == "/dashboard"
        assert body["user"]["email"] == "a@b.com"
        assert any(c.startswith("token=") for c in set_cookies(response))

        response = client.get("/api/auth/session")

        assert response.json()["authenticated"] is True
        assert fake_backend.calls("GET", "/users/me")[0].headers["Authorization"] == "Bearer jwt-token"

    def test_invalid_code_format(self, client, fake_backend):
        response = client.post("/api/auth/verify-2fa", json={"code": "12ab56"})

        assert response.status_code == 422
        assert response.json() == {"detail": "Verification code must be exactly 6 digits", "field": "code"}
        assert fake_backend.requests == []

    def test_verify_without_pending_login(self, client, fake_backend):
        response = client.post("/api/auth/verify-2fa", json={"code": "123456"})

        assert response.status_code == 409
        assert fake_backend.calls("POST", "/auth/verify-2fa") == []

    def test_bad_credentials(self, client, fake_backend):
        fake_backend.add("POST", "/auth/login", status=401, json_body={"message": "Invalid email or password"})

        response = client.post("/api/auth/login", json={"email": "a@b.com", "password": "wrong"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_backend_unreachable(self, client, fake_backend):
        fake_backend.add("POST", "/auth/login", status=503, json_body={"error": "Service Unavailable"})

        response = client.post("/api/auth/login", json={"email": "a@b.com", "password": "x"})

        assert response.status_code == 502
        assert response.json() == {"detail": "Service Unavailable"}

    def test_logout_clears_cookies(self, client, app, fake_backend):
        sign_in(client, app, fake_backend)

        response = client.post("/api/auth/logout")

        assert response.json()["authenticated"] is False
        assert any(c.startswith("token=") and "Max-Age=0" in c for c in set_cookies(response))


class TestUnauthorized:
    """Tests for the global logout on 401."""

    def test_api_without_session(self, client):
        response = client.get("/api/leave/requests/my")

        assert response.status_code == 401
        assert response.json()["redirect"] == "/login"

    def test_page_without_session_redirects(self, client):
        response = client.get("/dashboard", headers={"Accept": "text/html"}, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"

    def test_backend_401_ends_session(self, client, app, fake_backend):
        sign_in(client, app, fake_backend)
        fake_backend.add("GET", "/leave-requests/my-requests", status=401, json_body={"message": "Token expired"})

        response = client.get("/api/leave/requests/my")

        assert response.status_code == 401
        assert response.json() == {
            "detail": "Your session has expired. Please log in again.",
            "redirect": "/login",
        }
        cookies = set_cookies(response)
        assert any(c.startswith("token=") and "Max-Age=0" in c for c in cookies)
        assert any(c.startswith("pending_2fa=") and "Max-Age=0" in c for c in cookies)

    def test_rejected_cookie_on_page_shows_login(self, client, app, fake_backend):
        fake_backend.add("GET", "/users/me", status=401)
        client.cookies.set("token", app.state.cookie_sealer.seal("expired", "token"))

        response = client.get("/login", headers={"Accept": "text/html"}, follow_redirects=False)

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert any(c.startswith("token=") and "Max-Age=0" in c for c in set_cookies(response))


class TestPages:
    def test_root_redirects_to_login(self, client):
        response = client.get("/", follow_redirects=False)

        assert response.headers["location"] == "/login"

    def test_dashboard_page(self, client, app, fake_backend):
        sign_in(client, app, fake_backend, role="MANAGER")

        response = client.get("/dashboard", headers={"Accept": "text/html"})

        assert response.status_code == 200
        assert "Ada Lovelace" in response.text
        assert format_date(dt.date.today()) in response.text
        assert "{{" not in response.text

    def test_login_page_reopens_code_prompt(self, client, app):
        client.cookies.set("pending_2fa", app.state.cookie_sealer.seal("a@b.com", "pending_2fa"))

        response = client.get("/login")

        assert "TWO_FACTOR_PENDING" in response.text
        assert "a@b.com" in response.text


class TestLeaveApi:
    """Tests for the leave endpoints."""

    def test_validate_form(self, client, fake_backend):
        response = client.post(
            "/api/leave/validate",
            data={"leaveTypeId": "lt-annual", "startDate": "2025-03-10", "endDate": "2025-03-12"},
        )

        assert response.json() == {"days": 3}
        assert fake_backend.requests == []

    def test_validate_end_before_start(self, client):
        response = client.post(
            "/api/leave/validate",
            data={"leaveTypeId": "lt-annual", "startDate": "2025-03-12", "endDate": "2025-03-10"},
        )

        assert response.status_code == 422
        assert response.json()["field"] == "endDate"

    def test_apply_with_document(self, client, app, fake_backend):
        sign_in(client, app, fake_backend)
        fake_backend.add("GET", "/leave-types/lt-annual", json_body=envelope(leave_type_payload()))
        fake_backend.add("POST", "/leave-requests", status=201, json_body=envelope(leave_request_payload()))

        response = client.post(
            "/api/leave/requests",
            data={
                "leaveTypeId": "lt-annual",
                "startDate": "2025-03-10",
                "endDate": "2025-03-12",
                "reason": "Family trip",
            },
            files={"document": ("note.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["numberOfDays"] == 3
        assert body["status"] == "PENDING"
        assert b'filename="note.pdf"' in fake_backend.calls("POST", "/leave-requests")[0].content

    def test_apply_rejects_bad_document_type(self, client, app, fake_backend):
        sign_in(client, app, fake_backend)
        fake_backend.add("GET", "/leave-types/lt-annual", json_body=envelope(leave_type_payload()))

        response = client.post(
            "/api/leave/requests",
            data={"leaveTypeId": "lt-annual", "startDate": "2025-03-10", "endDate": "2025-03-12"},
            files={"document": ("tool.exe", b"MZ", "application/octet-stream")},
        )

        assert response.status_code == 422
        assert response.json()["field"] == "document"
        assert fake_backend.calls("POST", "/leave-requests") == []

    def test_apply_rejects_oversized_document(self, client, app, fake_backend):
        sign_in(client, app, fake_backend)
        fake_backend.add("GET", "/leave-types/lt-annual", json_body=envelope(leave_type_payload()))

        response = client.post(
            "/api/leave/requests",
            data={"leaveTypeId": "lt-annual", "startDate": "2025-03-10", "endDate": "2025-03-12"},
            files={"document": ("scan.pdf", b"0" * (MAX_DOCUMENT_BYTES + 1), "application/pdf")},
        )

        assert response.status_code == 422
        assert response.json() == {
            "detail": "scan.pdf is too large. Maximum file size is 10 MB.",
            "field": "document",
        }
        assert fake_backend.calls("GET", "/leave-types/lt-annual") == []
        assert fake_backend.calls("POST", "/leave-requests") == []

    def test_reject_without_comment(self, client, app, fake_backend):
        sign_in(client, app, fake_backend, role="MANAGER", user_id="u-9")

        response = client.put("/api/leave/requests/lr-1/review", json={"decision": "REJECT"})

        assert response.status_code == 422
        assert response.json()["field"] == "comment"
        assert fake_backend.calls("GET", "/leave-requests/lr-1") == []
        assert fake_backend.calls("PUT", "/leave-requests/lr-1/review") == []

    def test_staff_cannot_see_approvals(self, client, app, fake_backend):
        sign_in(client, app, fake_backend)

        response = client.get("/api/leave/requests/pending")

        assert response.status_code == 403

    def test_my_requests_paged(self, client, app, fake_backend):
        sign_in(client, app, fake_backend)
        fake_backend.add(
            "GET",
            "/leave-requests/my-requests",
            json_body=envelope(page_of([leave_request_payload()])),
        )

        response = client.get("/api/leave/requests/my", params={"page": 0, "size": 10})

        body = response.json()
        assert body["totalElements"] == 1
        assert body["content"][0]["leaveTypeName"] == "Annual Leave"
        assert fake_backend.calls("GET", "/leave-requests/my-requests")[0].url.params["size"] == "10"


class TestAdminApi:
    def test_staff_forbidden(self, client, app, fake_backend):
        sign_in(client, app, fake_backend, role="MANAGER")

        response = client.get("/api/admin/users")

        assert response.status_code == 403
        assert response.json() == {"detail": "Only administrators can perform this action"}

    def test_report_download(self, client, app, fake_backend):
        sign_in(client, app, fake_backend, role="ADMIN", user_id="u-0")
        fake_backend.add(
            "GET",
            "/reports/leave-requests/csv",
            content=b"id,status\nlr-1,APPROVED\n",
            headers={"content-type": "text/csv"},
        )

        response = client.get("/api/admin/reports/csv", params={"year": 2025})

        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="leave-report-')
        assert disposition.endswith('.csv"')
        assert response.content == b"id,status\nlr-1,APPROVED\n"

    def test_unknown_report_format(self, client, app, fake_backend):
        sign_in(client, app, fake_backend, role="ADMIN", user_id="u-0")

        response = client.get("/api/admin/reports/pdf")

        assert response.status_code == 422
