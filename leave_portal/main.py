"""
Leave Portal - Entry Point.

ASGI application for uvicorn execution.

Usage:
    uvicorn leave_portal.main:app --host 0.0.0.0 --port 8000 --reload

Or run directly:
    leave-portal
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
import uvicorn
from fastapi import FastAPI

from leave_portal import __version__
from leave_portal.core.config import PortalSettings, get_settings
from leave_portal.core.http_client import create_http_client_context
from leave_portal.core.logging_config import setup_logging
from leave_portal.core.security.cookies import CookieSealer
from leave_portal.core.server import create_base_app
from leave_portal.routers import admin_router, auth_router, leave_router, pages_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Owns the backend HTTP client: it is created on startup, stored in
    app.state for dependency injection and closed on shutdown.
    """
    logger = logging.getLogger(__name__)
    settings: PortalSettings = app.state.settings

    # Startup
    logger.info(f"Starting Leave Portal (backend: {settings.backend_base_url})")

    transport: Optional[httpx.AsyncBaseTransport] = getattr(app.state, "backend_transport", None)
    async with create_http_client_context(app, settings, transport=transport):
        logger.info("HTTP client initialized (stored in app.state for DI)")

        yield

        # Shutdown
        logger.info("Shutting down Leave Portal...")


def create_app(
    settings: Optional[PortalSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create the portal application.

    Args:
        settings: Portal settings. Uses cached settings if not provided.
        transport: Optional backend transport override (used by tests).
    """
    settings = settings or get_settings()

    app = create_base_app(
        settings,
        title="Leave Portal",
        description="Leave requests, approvals, balances and public holidays",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.cookie_sealer = CookieSealer.from_settings(settings)
    app.state.backend_transport = transport

    app.include_router(auth_router)
    app.include_router(leave_router)
    app.include_router(admin_router)
    app.include_router(pages_router)

    return app


# -----------------------------------------------------------------------------
# Module-level Application Instance
# -----------------------------------------------------------------------------

# Setup logging first
_settings = get_settings()
setup_logging(_settings.log_level, _settings.log_dir or None)

# Export for uvicorn
app = create_app(_settings)


# -----------------------------------------------------------------------------
# Direct Execution
# -----------------------------------------------------------------------------


def main() -> None:
    """Run the application directly with uvicorn."""
    uvicorn_config = {
        "host": _settings.server_host,
        "port": _settings.server_port,
        "reload": _settings.debug,
        "log_level": "warning",  # Suppress uvicorn info logs
        "access_log": False,     # Disable uvicorn access logs
    }

    # If reload is enabled, exclude logs and cache directories
    if _settings.debug:
        uvicorn_config["reload_excludes"] = [
            "logs/*",
            "**/__pycache__/*",
            "**/*.pyc",
            ".venv/*",
            "*.log",
        ]

    uvicorn.run("leave_portal.main:app", **uvicorn_config)


if __name__ == "__main__":
    main()
