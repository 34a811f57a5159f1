"""
Backend HTTP Client.

Thin wrapper over the shared httpx.AsyncClient that every API module goes
through. It owns the wire conventions of the leave management REST API:

    - Authorization: Bearer <token> on every request except PUBLIC_ENDPOINTS
    - 401 on an authenticated request clears the stored token and raises
      AuthenticationExpiredError (global logout)
    - any other non-2xx raises ApiError with the backend's message
    - transport failures raise NetworkError
    - the {message, status, data} envelope is unwrapped

Design Principles:
    BackendClient requires httpx.AsyncClient via EXPLICIT dependency injection.
    The token is read from the TokenStore right before each request; it is
    never cached on the client.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional, Protocol

import httpx

from leave_portal.core.exceptions import (
    ApiError,
    AuthenticationExpiredError,
    NetworkError,
    extract_api_message,
)

if TYPE_CHECKING:
    from leave_portal.services.scope import RequestScope

logger = logging.getLogger(__name__)

# Endpoints that must never carry an Authorization header.
PUBLIC_ENDPOINTS = frozenset({
    "/auth/login",
    "/auth/register",
    "/auth/verify-2fa",
    "/auth/public-register",
})


class TokenStore(Protocol):
    """Where the bearer token lives between requests."""

    def get_token(self) -> Optional[str]: ...

    def clear_token(self) -> None: ...


def is_public_endpoint(path: str) -> bool:
    """Check whether a request path belongs to the unauthenticated set."""
    normalized = "/" + path.split("?", 1)[0].strip("/")
    return normalized in PUBLIC_ENDPOINTS


def unwrap_envelope(payload: Any) -> Any:
    """
    Return the ``data`` member of a {message, status, data} envelope.

    Payloads that are not enveloped are returned unchanged.
    """
    if isinstance(payload, dict) and "data" in payload and (
        "status" in payload or "message" in payload
    ):
        return payload["data"]
    return payload


class BackendClient:
    """
    HTTP client for the leave management REST API.

    Args:
        http_client: Shared httpx.AsyncClient bound to the backend base URL.
        tokens: Source of the bearer token (cookie-backed in the web app).
        scope: Optional request scope; in-flight calls are cancelled when it closes.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        tokens: TokenStore,
        scope: Optional["RequestScope"] = None,
    ) -> None:
        if http_client is None:
            raise ValueError(
                "http_client is required. Use dependency injection via BackendDep "
                "in FastAPI routes, or create_standalone_http_client() in scripts."
            )
        self._client = http_client
        self._tokens = tokens
        self._scope = scope

    def _get_headers(self, path: str, accept: str = "application/json") -> dict[str, str]:
        headers = {"Accept": accept}
        if is_public_endpoint(path):
            return headers
        token = self._tokens.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        accept: str = "application/json",
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and apply the shared status handling."""
        request = self._client.request(
            method, path, headers=self._get_headers(path, accept), **kwargs
        )
        try:
            if self._scope is not None:
                response = await self._scope.run(request)
            else:
                response = await request
        except httpx.HTTPError as e:
            logger.error(f"Backend request failed: {method} {path}: {type(e).__name__}: {e}")
            raise NetworkError() from e

        if response.status_code == 401 and not is_public_endpoint(path):
            logger.warning(f"Backend rejected bearer token: {method} {path}")
            self._tokens.clear_token()
            raise AuthenticationExpiredError()

        if response.is_error:
            payload = self._parse_error_body(response)
            message = extract_api_message(
                payload, f"Request failed with status {response.status_code}"
            )
            logger.info(f"Backend error {response.status_code} on {method} {path}: {message}")
            raise ApiError(message, status_code=response.status_code, payload=payload)

        return response

    @staticmethod
    def _parse_error_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text or None

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Unreadable backend response ({response.status_code}): {e}")
            raise NetworkError() from e

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        files: Optional[dict[str, Any]] = None,
        unwrap: bool = True,
    ) -> Any:
        """
        Send a request to the backend and return the decoded body.

        Args:
            method: HTTP method.
            path: Path relative to the backend base URL.
            params: Query parameters; None values are dropped.
            json: JSON body.
            data: Multipart form fields (used together with files).
            files: Multipart file parts.
            unwrap: Return only the envelope's ``data`` member.

        Raises:
            AuthenticationExpiredError: Backend answered 401 on an authenticated path.
            ApiError: Any other non-2xx answer.
            NetworkError: Transport failure or unreadable body.
        """
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = {k: v for k, v in params.items() if v is not None}
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data
        if files:
            kwargs["files"] = files

        response = await self._send(method, path, **kwargs)
        payload = self._parse_body(response)
        return unwrap_envelope(payload) if unwrap else payload

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def download(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> tuple[bytes, str]:
        """
        Fetch a binary resource.

        Returns:
            Tuple of (content bytes, content type).
        """
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = {k: v for k, v in params.items() if v is not None}
        response = await self._send("GET", path, accept="*/*", **kwargs)
        content_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, content_type
