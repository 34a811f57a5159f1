"""
Authentication Router.

JSON endpoints behind the login page and the 2FA settings panel:

    POST /api/auth/login         email + password
    POST /api/auth/verify-2fa    6-digit code for the retained email
    POST /api/auth/cancel-2fa    abandon the pending verification
    POST /api/auth/register      self-registration
    POST /api/auth/logout
    GET  /api/auth/session       current state of the login sequence
    GET/POST /api/auth/2fa/...   2FA enrollment for the signed-in user

Every step answers with a SessionResponse so the page can decide whether
to show the code prompt or move on to the dashboard.
"""

import logging

from fastapi import APIRouter

from leave_portal.core.dependencies import (
    EnrollmentDep,
    LoginFlowDep,
    SessionDep,
    SubmissionGuardDep,
)
from leave_portal.schemas.auth import (
    DisableTwoFactorRequest,
    EnrollmentResponse,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
    VerifyCodeRequest,
)
from leave_portal.services.session import SessionStore
from leave_portal.services.two_factor import (
    LoginState,
    TwoFactorEnrollment,
    TwoFactorLoginFlow,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])

DASHBOARD_PATH = "/dashboard"


def _session_response(flow: TwoFactorLoginFlow, session: SessionStore) -> SessionResponse:
    authenticated = flow.state == LoginState.AUTHENTICATED and session.authenticated
    return SessionResponse(
        state=flow.state.value,
        authenticated=authenticated,
        user=session.user if authenticated else None,
        pending_email=flow.pending_email,
        message=flow.message,
        redirect=DASHBOARD_PATH if authenticated else None,
    )


def _enrollment_response(enrollment: TwoFactorEnrollment, message: str | None = None) -> EnrollmentResponse:
    secret = enrollment.secret
    return EnrollmentResponse(
        state=enrollment.state.value,
        enabled=enrollment.enabled,
        secret=secret.secret if secret else None,
        qr_code_url=secret.qr_code_url if secret else None,
        message=message,
    )


# =============================================================================
# Login Sequence
# =============================================================================


@router.get("/session", response_model=SessionResponse)
async def get_session_state(flow: LoginFlowDep, session: SessionDep) -> SessionResponse:
    """Where the browser currently is in the login sequence."""
    return _session_response(flow, session)


@router.post("/login", response_model=SessionResponse)
async def login(
    request: LoginRequest,
    flow: LoginFlowDep,
    session: SessionDep,
    guard: SubmissionGuardDep,
) -> SessionResponse:
    """
    Submit credentials.

    Answers TWO_FACTOR_PENDING when the backend asks for a code; no token
    is stored in that case.
    """
    async with guard.hold(f"login:{request.email.lower()}"):
        await flow.submit_credentials(request.email, request.password, request.two_factor_code)
    return _session_response(flow, session)


@router.post("/verify-2fa", response_model=SessionResponse)
async def verify_two_factor(
    request: VerifyCodeRequest,
    flow: LoginFlowDep,
    session: SessionDep,
    guard: SubmissionGuardDep,
) -> SessionResponse:
    """Complete a pending login with the authenticator code."""
    async with guard.hold(f"verify-2fa:{flow.pending_email or ''}"):
        await flow.verify_code(request.code)
    return _session_response(flow, session)


@router.post("/cancel-2fa", response_model=SessionResponse)
async def cancel_two_factor(flow: LoginFlowDep, session: SessionDep) -> SessionResponse:
    flow.cancel()
    return _session_response(flow, session)


@router.post("/register", response_model=SessionResponse)
async def register(
    request: RegisterRequest,
    flow: LoginFlowDep,
    session: SessionDep,
    guard: SubmissionGuardDep,
) -> SessionResponse:
    """Create an account and sign in."""
    async with guard.hold(f"register:{request.email.lower()}"):
        await flow.register(request.email, request.password, request.first_name, request.last_name)
    logger.info(f"Account registered for {request.email}")
    return _session_response(flow, session)


@router.post("/logout", response_model=SessionResponse)
async def logout(session: SessionDep) -> SessionResponse:
    session.logout()
    return SessionResponse(state=LoginState.ANONYMOUS.value, authenticated=False, redirect="/login")


# =============================================================================
# 2FA Enrollment
# =============================================================================


@router.get("/2fa", response_model=EnrollmentResponse)
async def get_two_factor_status(enrollment: EnrollmentDep) -> EnrollmentResponse:
    return _enrollment_response(enrollment)


@router.post("/2fa/enable", response_model=EnrollmentResponse)
async def enable_two_factor(enrollment: EnrollmentDep) -> EnrollmentResponse:
    """Issue a secret and QR code. 2FA is not active until confirmed."""
    await enrollment.begin()
    return _enrollment_response(
        enrollment, "Scan the QR code, then enter the 6-digit code to finish."
    )


@router.post("/2fa/verify-enable", response_model=EnrollmentResponse)
async def confirm_two_factor(
    request: VerifyCodeRequest,
    enrollment: EnrollmentDep,
    guard: SubmissionGuardDep,
) -> EnrollmentResponse:
    async with guard.hold(f"{enrollment.user.id}:2fa-enable"):
        await enrollment.confirm(request.code)
    return _enrollment_response(enrollment, "Two-factor authentication enabled")


@router.post("/2fa/disable", response_model=EnrollmentResponse)
async def disable_two_factor(
    request: DisableTwoFactorRequest,
    enrollment: EnrollmentDep,
) -> EnrollmentResponse:
    await enrollment.disable(request.confirm)
    return _enrollment_response(enrollment, "Two-factor authentication disabled")
