"""
HTTP Client Lifecycle Management.

Provides a lifecycle-managed httpx.AsyncClient bound to the backend API.
The client is created in the FastAPI lifespan, stored in app.state and
handed to route handlers through dependency injection. There is no
module-level client.

Usage:
    # In the lifespan:
    async with create_http_client_context(app, settings) as http_manager:
        yield

    # In routes:
    def get_http_client(request: Request) -> httpx.AsyncClient:
        return request.app.state.http_client

    # In scripts and tests:
    async with create_standalone_http_client(settings) as client:
        api = LeaveApi(BackendClient(client, tokens))
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator, Optional

import httpx

from leave_portal.core.config import PortalSettings

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _build_limits(max_connections: int) -> httpx.Limits:
    return httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=min(20, max_connections),
        keepalive_expiry=30.0,
    )


class HttpClientManager:
    """
    Manages the lifecycle of the backend httpx.AsyncClient.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_connections: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the HTTP client manager.

        Args:
            base_url: Backend API base URL; request paths are resolved against it.
            timeout: Default timeout for requests in seconds.
            max_connections: Maximum number of concurrent connections.
            transport: Optional transport override (used by tests).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._limits = _build_limits(max_connections)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> httpx.AsyncClient:
        """
        Create and start the HTTP client.

        Raises:
            RuntimeError: If client is already started.
        """
        if self._client is not None:
            raise RuntimeError("HTTP client already started")

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            limits=self._limits,
            transport=self._transport,
        )
        logger.info(
            f"HTTP client started (base_url={self._base_url}, timeout={self._timeout}s, "
            f"max_connections={self._limits.max_connections})"
        )
        return self._client

    async def stop(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed")

    @property
    def client(self) -> httpx.AsyncClient:
        """
        Get the managed HTTP client.

        Raises:
            RuntimeError: If client is not started.
        """
        if self._client is None:
            raise RuntimeError(
                "HTTP client not started. Ensure lifespan context is properly configured."
            )
        return self._client

    @property
    def is_running(self) -> bool:
        """Check if the HTTP client is running."""
        return self._client is not None and not self._client.is_closed


@asynccontextmanager
async def create_http_client_context(
    app: "FastAPI",
    settings: PortalSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncGenerator[HttpClientManager, None]:
    """
    Async context manager for the backend HTTP client lifecycle.

    Use this in the FastAPI lifespan.

    Args:
        app: FastAPI application instance.
        settings: Portal settings (backend URL, timeout, pool size).
        transport: Optional transport override.

    Yields:
        HttpClientManager instance.
    """
    manager = HttpClientManager(
        base_url=settings.backend_base_url,
        timeout=settings.request_timeout_seconds,
        max_connections=settings.max_connections,
        transport=transport,
    )

    try:
        client = await manager.start()
        app.state.http_client = client
        app.state.http_client_manager = manager
        yield manager
    finally:
        await manager.stop()
        if hasattr(app.state, "http_client"):
            delattr(app.state, "http_client")
        if hasattr(app.state, "http_client_manager"):
            delattr(app.state, "http_client_manager")


@asynccontextmanager
async def create_standalone_http_client(
    settings: PortalSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Create a standalone backend client bound to the caller's scope.

    The client is closed when the context exits.
    """
    client = httpx.AsyncClient(
        base_url=settings.backend_base_url,
        timeout=settings.request_timeout_seconds,
        limits=_build_limits(settings.max_connections),
        transport=transport,
    )
    logger.debug(f"Standalone HTTP client created (base_url={settings.backend_base_url})")

    try:
        yield client
    finally:
        await client.aclose()
        logger.debug("Standalone HTTP client closed")


def get_http_client_from_app(app: "FastAPI") -> httpx.AsyncClient:
    """
    Get HTTP client from FastAPI app state.

    Raises:
        RuntimeError: If HTTP client is not configured.
    """
    if not hasattr(app.state, "http_client"):
        raise RuntimeError(
            "HTTP client not available. Ensure lifespan context is properly configured."
        )
    return app.state.http_client
