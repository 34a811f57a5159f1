"""
FastAPI Dependencies - Dependency Injection for API Routers.

Provides `Annotated[Service, Depends(get_service)]` patterns so route
handlers receive fully wired objects. Everything that depends on the
browser session is built per request; nothing session-related is global.

Usage:
    from leave_portal.core.dependencies import CurrentUserDep, WorkflowDep

    @router.get("/dashboard")
    async def dashboard(user: CurrentUserDep, workflow: WorkflowDep):
        return await workflow.dashboard()
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import httpx
from fastapi import Depends, Request

from leave_portal.clients.auth import AuthApi
from leave_portal.clients.base import BackendClient
from leave_portal.clients.leave import LeaveApi
from leave_portal.clients.users import UserDirectory, UsersApi
from leave_portal.core.config import PortalSettings, get_settings
from leave_portal.core.exceptions import AuthenticationExpiredError, PermissionDeniedError
from leave_portal.core.http_client import get_http_client_from_app
from leave_portal.core.security.cookies import CookieSealer
from leave_portal.core.security.session_cookies import STATE_ATTRIBUTE, CookieSessionPersistence
from leave_portal.schemas.auth import User
from leave_portal.services.leave import LeaveWorkflow
from leave_portal.services.scope import RequestScope, SubmissionGuard, get_submission_guard
from leave_portal.services.session import SessionStore
from leave_portal.services.two_factor import TwoFactorEnrollment, TwoFactorLoginFlow

logger = logging.getLogger(__name__)


# =============================================================================
# Application-wide Dependencies
# =============================================================================


def get_portal_settings(request: Request) -> PortalSettings:
    """Settings the app was created with (falls back to the cached settings)."""
    return getattr(request.app.state, "settings", None) or get_settings()


SettingsDep = Annotated[PortalSettings, Depends(get_portal_settings)]


def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    FastAPI dependency for the shared backend HTTP client.

    Raises:
        RuntimeError: If the lifespan did not start the client.
    """
    return get_http_client_from_app(request.app)


HttpClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]


def get_cookie_sealer(request: Request, settings: SettingsDep) -> CookieSealer:
    sealer = getattr(request.app.state, "cookie_sealer", None)
    if sealer is None:
        sealer = CookieSealer.from_settings(settings)
        request.app.state.cookie_sealer = sealer
    return sealer


CookieSealerDep = Annotated[CookieSealer, Depends(get_cookie_sealer)]


def get_guard() -> SubmissionGuard:
    return get_submission_guard()


SubmissionGuardDep = Annotated[SubmissionGuard, Depends(get_guard)]


# =============================================================================
# Per-request Dependencies
# =============================================================================


def get_session_persistence(
    request: Request,
    sealer: CookieSealerDep,
    settings: SettingsDep,
) -> CookieSessionPersistence:
    """Cookie persistence for this request; registered for the cookie middleware."""
    persistence = CookieSessionPersistence(request, sealer, settings)
    setattr(request.state, STATE_ATTRIBUTE, persistence)
    return persistence


PersistenceDep = Annotated[CookieSessionPersistence, Depends(get_session_persistence)]


async def get_request_scope(request: Request) -> AsyncGenerator[RequestScope, None]:
    """
    Request scope closed when the browser disconnects or the handler ends.
    """
    scope = RequestScope(name=f"{request.method} {request.url.path}")
    watcher = asyncio.create_task(scope.watch(request.is_disconnected))
    try:
        yield scope
    finally:
        watcher.cancel()
        scope.close()


RequestScopeDep = Annotated[RequestScope, Depends(get_request_scope)]


def get_backend(
    http_client: HttpClientDep,
    persistence: PersistenceDep,
    scope: RequestScopeDep,
) -> BackendClient:
    return BackendClient(http_client, persistence, scope=scope)


BackendDep = Annotated[BackendClient, Depends(get_backend)]


def get_auth_api(backend: BackendDep) -> AuthApi:
    return AuthApi(backend)


def get_users_api(backend: BackendDep) -> UsersApi:
    return UsersApi(backend)


def get_leave_api(backend: BackendDep) -> LeaveApi:
    return LeaveApi(backend)


AuthApiDep = Annotated[AuthApi, Depends(get_auth_api)]
UsersApiDep = Annotated[UsersApi, Depends(get_users_api)]
LeaveApiDep = Annotated[LeaveApi, Depends(get_leave_api)]


async def get_session(persistence: PersistenceDep, auth: AuthApiDep) -> SessionStore:
    """Session for this request, bootstrapped from the token cookie."""
    session = SessionStore(persistence, auth)
    await session.bootstrap()
    return session


SessionDep = Annotated[SessionStore, Depends(get_session)]


def get_current_user(session: SessionDep) -> User:
    """
    Signed-in user.

    Raises:
        AuthenticationExpiredError: Nobody is signed in; handled as a
            redirect to /login.
    """
    if session.user is None:
        raise AuthenticationExpiredError("Please log in to continue.")
    return session.user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def require_admin(user: CurrentUserDep) -> User:
    if not user.is_admin:
        logger.warning(f"User {user.id} ({user.role.value}) denied admin access")
        raise PermissionDeniedError("Only administrators can perform this action")
    return user


AdminUserDep = Annotated[User, Depends(require_admin)]


def get_login_flow(session: SessionDep, auth: AuthApiDep) -> TwoFactorLoginFlow:
    return TwoFactorLoginFlow(session, auth)


LoginFlowDep = Annotated[TwoFactorLoginFlow, Depends(get_login_flow)]


def get_enrollment(user: CurrentUserDep, auth: AuthApiDep) -> TwoFactorEnrollment:
    return TwoFactorEnrollment(user, auth)


EnrollmentDep = Annotated[TwoFactorEnrollment, Depends(get_enrollment)]


def get_workflow(user: CurrentUserDep, leave: LeaveApiDep, users: UsersApiDep) -> LeaveWorkflow:
    return LeaveWorkflow(leave, user, directory=UserDirectory(users))


WorkflowDep = Annotated[LeaveWorkflow, Depends(get_workflow)]
