"""
FastAPI Application Factory.

Creates and configures the FastAPI application: CORS, security headers,
session cookie write-back, the error taxonomy handlers and core routes.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response

from leave_portal.core.config import PortalSettings
from leave_portal.core.exceptions import (
    ApiError,
    AuthenticationExpiredError,
    PortalError,
    ValidationError,
    get_error_message,
)
from leave_portal.core.security.session_cookies import STATE_ATTRIBUTE, clear_session_cookies

_logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"


def create_base_app(
    settings: PortalSettings,
    title: str = "Leave Portal",
    description: str = "Leave management portal",
    version: str = "1.0.0",
    lifespan=None,
) -> FastAPI:
    """
    Create and configure the base FastAPI application.

    Args:
        settings: Portal settings.
        title: API title for OpenAPI documentation.
        description: API description for OpenAPI documentation.
        version: API version string.
        lifespan: Lifespan context manager that owns the backend HTTP client.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(title=title, description=description, version=version, lifespan=lifespan)
    app.state.settings = settings

    # Add CORS middleware
    allowed_origins: list[str] = []
    if settings.base_url:
        allowed_origins.append(settings.base_url.rstrip("/"))

    # In debug mode, also allow localhost for development
    if settings.debug:
        allowed_origins.extend([
            f"http://localhost:{settings.server_port}",
            f"http://127.0.0.1:{settings.server_port}",
        ])

    if not allowed_origins:
        _logger.warning(
            "LEAVE_PORTAL_BASE_URL not configured. "
            "CORS will reject all cross-origin requests."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # Write queued session cookie changes onto whatever response is returned
    @app.middleware("http")
    async def apply_session_cookies(request: Request, call_next):
        response = await call_next(request)
        persistence = getattr(request.state, STATE_ATTRIBUTE, None)
        if persistence is not None and persistence.has_changes:
            persistence.apply(response)
        return response

    # Add security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    _register_exception_handlers(app)
    _register_core_routes(app)

    return app


def wants_html(request: Request) -> bool:
    """Whether the request is a page navigation rather than an API call."""
    if request.url.path.startswith("/api/"):
        return False
    return "text/html" in request.headers.get("accept", "")


def error_status(exc: PortalError) -> int:
    """HTTP status the portal answers with for a portal error."""
    if isinstance(exc, ApiError):
        # Backend faults are reported as a bad gateway, client faults verbatim.
        if 400 <= exc.status_code < 500:
            return exc.status_code
        return status.HTTP_502_BAD_GATEWAY
    return exc.status_code


def _register_exception_handlers(app: FastAPI) -> None:
    """Map the error taxonomy onto responses."""

    @app.exception_handler(AuthenticationExpiredError)
    async def handle_authentication_expired(
        request: Request, exc: AuthenticationExpiredError
    ) -> Response:
        settings: PortalSettings = request.app.state.settings
        path = request.url.path

        if wants_html(request) and path != LOGIN_PATH:
            _logger.info(f"Unauthenticated page request {path}; redirecting to {LOGIN_PATH}")
            response: Response = RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
        else:
            response = JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": exc.message, "redirect": LOGIN_PATH},
            )
        clear_session_cookies(response, settings)
        return response

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "field": exc.field},
        )

    @app.exception_handler(PortalError)
    async def handle_portal_error(request: Request, exc: PortalError) -> JSONResponse:
        code = error_status(exc)
        if code >= 500:
            _logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}")
        return JSONResponse(status_code=code, content={"detail": get_error_message(exc)})


def _register_core_routes(app: FastAPI) -> None:
    """Register core routes (health check)."""

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, object]:
        """Health check endpoint."""
        manager = getattr(request.app.state, "http_client_manager", None)
        return {
            "status": "ok",
            "service": "Leave Portal",
            "backend_client": bool(manager and manager.is_running),
        }
