"""
Tests for the two-factor login sequence and 2FA enrollment.
"""

import httpx
import pytest

from leave_portal.core.exceptions import ApiError, InvalidStateError, NetworkError, ValidationError
from leave_portal.services.mapping import map_user
from leave_portal.services.two_factor import (
    EnrollmentState,
    LoginState,
    TwoFactorEnrollment,
    TwoFactorLoginFlow,
    validate_code,
)
from tests.conftest import envelope, login_payload, user_payload


@pytest.fixture
def flow(session, auth_api) -> TwoFactorLoginFlow:
    return TwoFactorLoginFlow(session, auth_api)


def require_two_factor(fake_backend):
    fake_backend.add(
        "POST",
        "/auth/login",
        json_body=envelope({"requiresTwoFactor": True}, message="2FA required"),
    )


class TestValidateCode:
    @pytest.mark.parametrize("code", ["123456", "000000"])
    def test_valid(self, code):
        assert validate_code(code) == code

    @pytest.mark.parametrize("code", [None, "", "12345", "1234567", "12a456", " 123456", "１２３４５６"])
    def test_invalid(self, code):
        with pytest.raises(ValidationError) as exc_info:
            validate_code(code)

        assert exc_info.value.field == "code"


class TestLoginFlow:
    """Tests for TwoFactorLoginFlow."""

    def test_initial_state(self, flow):
        assert flow.state == LoginState.ANONYMOUS
        assert flow.pending_email is None

    def test_initial_state_from_pending_cookie(self, session, auth_api, persistence):
        persistence.pending_email = "a@b.com"

        flow = TwoFactorLoginFlow(session, auth_api)

        assert flow.state == LoginState.TWO_FACTOR_PENDING
        assert flow.pending_email == "a@b.com"

    @pytest.mark.asyncio
    async def test_login_without_two_factor(self, flow, session, persistence, fake_backend):
        fake_backend.add("POST", "/auth/login", json_body=login_payload(token="jwt-token"))

        state = await flow.submit_credentials("a@b.com", "x")

        assert state == LoginState.AUTHENTICATED
        assert persistence.token == "jwt-token"
        assert session.user.email == "a@b.com"
        assert fake_backend.json_of(fake_backend.calls("POST", "/auth/login")[0]) == {"email": "a@b.com", "password": "x"}

    @pytest.mark.asyncio
    async def test_two_factor_scenario(self, flow, session, persistence, fake_backend):
        """Password step, then the code for the retained email."""
        require_two_factor(fake_backend)
        fake_backend.add("POST", "/auth/verify-2fa", json_body=login_payload(token="jwt-token"))

        state = await flow.submit_credentials("a@b.com", "x")

        assert state == LoginState.TWO_FACTOR_PENDING
        assert flow.message == "2FA required"
        assert persistence.token is None
        assert persistence.pending_email == "a@b.com"
        assert not session.authenticated

        state = await flow.verify_code("123456")

        assert state == LoginState.AUTHENTICATED
        assert persistence.token == "jwt-token"
        assert persistence.pending_email is None
        assert session.user.email == "a@b.com"
        assert fake_backend.json_of(fake_backend.calls("POST", "/auth/verify-2fa")[0]) == {"email": "a@b.com", "code": "123456"}

    @pytest.mark.asyncio
    async def test_two_factor_signalled_by_error(self, flow, persistence, fake_backend):
        fake_backend.add(
            "POST",
            "/auth/login",
            status=403,
            json_body={"message": "Two-factor code required", "requiresTwoFactor": True},
        )

        state = await flow.submit_credentials("a@b.com", "x")

        assert state == LoginState.TWO_FACTOR_PENDING
        assert flow.message == "Two-factor code required"
        assert persistence.pending_email == "a@b.com"

    @pytest.mark.asyncio
    async def test_pending_login_discards_stale_token(self, flow, persistence, fake_backend):
        persistence.token = "stale"
        require_two_factor(fake_backend)

        await flow.submit_credentials("a@b.com", "x")

        assert persistence.token is None

    @pytest.mark.asyncio
    async def test_token_sent_with_flag_still_needs_code(self, flow, session, persistence, fake_backend):
        """A token that arrives together with requiresTwoFactor is not a session yet."""
        fake_backend.add(
            "POST",
            "/auth/login",
            json_body=envelope(
                {"requiresTwoFactor": True, "accessToken": "half-token", "user": user_payload()},
                message="2FA required",
            ),
        )

        state = await flow.submit_credentials("a@b.com", "x")

        assert state == LoginState.TWO_FACTOR_PENDING
        assert persistence.token is None
        assert persistence.pending_email == "a@b.com"
        assert not session.authenticated
        assert fake_backend.calls("GET", "/users/me") == []

    @pytest.mark.asyncio
    async def test_bad_credentials(self, flow, persistence, fake_backend):
        fake_backend.add("POST", "/auth/login", status=401, json_body={"message": "Invalid email or password"})

        with pytest.raises(ApiError, match="Invalid email or password"):
            await flow.submit_credentials("a@b.com", "wrong")

        assert flow.state == LoginState.ANONYMOUS
        assert persistence.pending_email is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email, password, field",
        [("", "x", "email"), ("   ", "x", "email"), ("a@b.com", "", "password")],
    )
    async def test_missing_credentials_send_nothing(self, flow, fake_backend, email, password, field):
        with pytest.raises(ValidationError) as exc_info:
            await flow.submit_credentials(email, password)

        assert exc_info.value.field == field
        assert fake_backend.requests == []

    @pytest.mark.asyncio
    async def test_inline_code_passed_through(self, flow, fake_backend):
        fake_backend.add("POST", "/auth/login", json_body=login_payload())

        await flow.submit_credentials("a@b.com", "x", two_factor_code="123456")

        assert fake_backend.json_of(fake_backend.calls("POST", "/auth/login")[0])["twoFactorCode"] == "123456"

    @pytest.mark.asyncio
    async def test_login_without_token_is_error(self, flow, fake_backend):
        fake_backend.add("POST", "/auth/login", json_body=envelope({}, message="Weird"))

        with pytest.raises(ApiError) as exc_info:
            await flow.submit_credentials("a@b.com", "x")

        assert exc_info.value.status_code == 502
        assert flow.state == LoginState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_malformed_code_sends_nothing(self, flow, persistence, fake_backend):
        persistence.pending_email = "a@b.com"
        flow.state = LoginState.TWO_FACTOR_PENDING

        with pytest.raises(ValidationError):
            await flow.verify_code("12345")

        assert fake_backend.requests == []
        assert flow.state == LoginState.TWO_FACTOR_PENDING

    @pytest.mark.asyncio
    async def test_rejected_code_keeps_email(self, session, auth_api, persistence, fake_backend):
        persistence.pending_email = "a@b.com"
        fake_backend.add("POST", "/auth/verify-2fa", status=400, json_body={"message": "Invalid verification code"})
        flow = TwoFactorLoginFlow(session, auth_api)

        with pytest.raises(ApiError, match="Invalid verification code"):
            await flow.verify_code("999999")

        assert flow.state == LoginState.TWO_FACTOR_PENDING
        assert persistence.pending_email == "a@b.com"
        assert persistence.token is None

    @pytest.mark.asyncio
    async def test_verify_never_sends_leftover_token(self, session, auth_api, persistence, fake_backend):
        persistence.pending_email = "a@b.com"
        persistence.token = "leftover"
        fake_backend.add("POST", "/auth/verify-2fa", json_body=login_payload())
        flow = TwoFactorLoginFlow(session, auth_api)

        await flow.verify_code("123456")

        assert "Authorization" not in fake_backend.calls("POST", "/auth/verify-2fa")[0].headers

    @pytest.mark.asyncio
    async def test_verify_without_pending_email(self, flow, fake_backend):
        with pytest.raises(InvalidStateError):
            await flow.verify_code("123456")

        assert fake_backend.requests == []

    @pytest.mark.asyncio
    async def test_malformed_code_checked_before_pending_state(self, flow, fake_backend):
        with pytest.raises(ValidationError) as exc_info:
            await flow.verify_code("12ab56")

        assert exc_info.value.field == "code"
        assert fake_backend.requests == []

    @pytest.mark.asyncio
    async def test_network_failure_during_verify(self, session, auth_api, persistence, fake_backend):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        persistence.pending_email = "a@b.com"
        fake_backend.add_handler("POST", "/auth/verify-2fa", refuse)
        flow = TwoFactorLoginFlow(session, auth_api)

        with pytest.raises(NetworkError):
            await flow.verify_code("123456")

        assert persistence.pending_email == "a@b.com"

    def test_cancel(self, session, auth_api, persistence):
        persistence.pending_email = "a@b.com"
        flow = TwoFactorLoginFlow(session, auth_api)

        assert flow.cancel() == LoginState.ANONYMOUS
        assert persistence.pending_email is None

    @pytest.mark.asyncio
    async def test_register(self, flow, persistence, fake_backend):
        fake_backend.add("POST", "/auth/register", json_body=login_payload(token="new-token"))

        state = await flow.register("a@b.com", "secret", "Ada", "Lovelace")

        assert state == LoginState.AUTHENTICATED
        assert persistence.token == "new-token"
        assert fake_backend.json_of(fake_backend.calls("POST", "/auth/register")[0])["firstName"] == "Ada"

    @pytest.mark.asyncio
    async def test_register_requires_names(self, flow, fake_backend):
        with pytest.raises(ValidationError, match="Last name is required"):
            await flow.register("a@b.com", "secret", "Ada", " ")

        assert fake_backend.requests == []


class TestEnrollment:
    """Tests for TwoFactorEnrollment."""

    @pytest.fixture
    def user(self):
        return map_user(user_payload())

    @pytest.mark.asyncio
    async def test_enable_scenario(self, user, auth_api, fake_backend):
        fake_backend.add(
            "POST",
            "/auth/2fa/enable",
            json_body=envelope({"secret": "JBSWY3DPEHPK3PXP", "qrCodeUrl": "otpauth://totp/Leave:a@b.com"}),
        )
        fake_backend.add("POST", "/auth/2fa/verify-enable", json_body=envelope({"enabled": True}))
        enrollment = TwoFactorEnrollment(user, auth_api)

        secret = await enrollment.begin()

        assert enrollment.state == EnrollmentState.SECRET_ISSUED
        assert secret.secret == "JBSWY3DPEHPK3PXP"
        assert not enrollment.enabled

        assert await enrollment.confirm("123456") == EnrollmentState.ENABLED
        assert enrollment.user.two_factor_enabled is True
        assert enrollment.secret is None

    @pytest.mark.asyncio
    async def test_not_enabled_by_backend(self, user, auth_api, fake_backend):
        fake_backend.add("POST", "/auth/2fa/verify-enable", json_body=envelope({"enabled": False}))
        enrollment = TwoFactorEnrollment(user, auth_api)

        with pytest.raises(ApiError):
            await enrollment.confirm("123456")

        assert enrollment.state == EnrollmentState.DISABLED

    @pytest.mark.asyncio
    async def test_confirm_validates_code(self, user, auth_api, fake_backend):
        enrollment = TwoFactorEnrollment(user, auth_api)

        with pytest.raises(ValidationError):
            await enrollment.confirm("abc")

        assert fake_backend.requests == []

    @pytest.mark.asyncio
    async def test_begin_when_enabled(self, auth_api):
        enrollment = TwoFactorEnrollment(map_user(user_payload(two_factor_enabled=True)), auth_api)

        with pytest.raises(InvalidStateError):
            await enrollment.begin()

    @pytest.mark.asyncio
    async def test_disable_requires_confirmation(self, auth_api, fake_backend):
        enrollment = TwoFactorEnrollment(map_user(user_payload(two_factor_enabled=True)), auth_api)

        with pytest.raises(ValidationError) as exc_info:
            await enrollment.disable(confirmed=False)

        assert exc_info.value.field == "confirm"
        assert fake_backend.requests == []

    @pytest.mark.asyncio
    async def test_disable(self, auth_api, fake_backend):
        fake_backend.add("POST", "/auth/2fa/disable", json_body=envelope(None, message="2FA disabled"))
        enrollment = TwoFactorEnrollment(map_user(user_payload(two_factor_enabled=True)), auth_api)

        assert await enrollment.disable(confirmed=True) == EnrollmentState.DISABLED
        assert enrollment.user.two_factor_enabled is False
