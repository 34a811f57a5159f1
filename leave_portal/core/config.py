"""
Portal Configuration.

Settings loaded from environment variables (and an optional .env file).
All variables use the LEAVE_PORTAL_ prefix.
Sensitive values use SecretStr so they never end up in logs or reprs.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Bearer token cookie lifetime (7 days)
TOKEN_MAX_AGE_SECONDS = 7 * 24 * 60 * 60


class PortalSettings(BaseSettings):
    """
    Leave portal settings loaded from environment variables.

    The backend URL points at the remote leave management REST API.
    Every business rule lives there; the portal only needs to know
    where it is and how to talk to it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # === Backend API ===
    backend_url: Annotated[
        str,
        Field(
            description="Base URL of the leave management REST API",
            validation_alias="LEAVE_PORTAL_BACKEND_URL",
        ),
    ] = "http://localhost:8080/api/v1"

    request_timeout_seconds: Annotated[
        float,
        Field(
            description="HTTP timeout for backend requests",
            validation_alias="LEAVE_PORTAL_REQUEST_TIMEOUT_SECONDS",
        ),
    ] = 30.0

    max_connections: Annotated[
        int,
        Field(
            description="Maximum concurrent connections to the backend",
            validation_alias="LEAVE_PORTAL_MAX_CONNECTIONS",
        ),
    ] = 100

    # === Cookies ===
    token_cookie_name: Annotated[
        str,
        Field(
            description="Cookie holding the sealed bearer token",
            validation_alias="LEAVE_PORTAL_TOKEN_COOKIE_NAME",
        ),
    ] = "token"

    token_max_age_seconds: Annotated[
        int,
        Field(
            description="Bearer token cookie lifetime",
            validation_alias="LEAVE_PORTAL_TOKEN_MAX_AGE_SECONDS",
        ),
    ] = TOKEN_MAX_AGE_SECONDS

    pending_cookie_name: Annotated[
        str,
        Field(
            description="Cookie holding the email awaiting 2FA verification",
            validation_alias="LEAVE_PORTAL_PENDING_COOKIE_NAME",
        ),
    ] = "pending_2fa"

    pending_max_age_seconds: Annotated[
        int,
        Field(
            description="Lifetime of the pending 2FA verification cookie",
            validation_alias="LEAVE_PORTAL_PENDING_MAX_AGE_SECONDS",
        ),
    ] = 600

    cookie_secure: Annotated[
        bool,
        Field(
            description="Only send cookies over HTTPS",
            validation_alias="LEAVE_PORTAL_COOKIE_SECURE",
        ),
    ] = False

    security_key: Annotated[
        SecretStr,
        Field(
            description="Hex encoded 32-byte key used to seal cookies (openssl rand -hex 32)",
            validation_alias="LEAVE_PORTAL_SECURITY_KEY",
        ),
    ] = SecretStr("")

    # === Server ===
    server_host: Annotated[
        str,
        Field(validation_alias="LEAVE_PORTAL_SERVER_HOST"),
    ] = "127.0.0.1"

    server_port: Annotated[
        int,
        Field(validation_alias="LEAVE_PORTAL_SERVER_PORT"),
    ] = 8000

    base_url: Annotated[
        str,
        Field(
            description="Public URL of the portal, allowed as CORS origin",
            validation_alias="LEAVE_PORTAL_BASE_URL",
        ),
    ] = ""

    # === App ===
    debug: Annotated[
        bool,
        Field(validation_alias="LEAVE_PORTAL_DEBUG"),
    ] = False

    log_level: Annotated[
        str,
        Field(validation_alias="LEAVE_PORTAL_LOG_LEVEL"),
    ] = "INFO"

    log_dir: Annotated[
        str,
        Field(
            description="Directory for rotating log files (empty = ./logs)",
            validation_alias="LEAVE_PORTAL_LOG_DIR",
        ),
    ] = ""

    @property
    def backend_base_url(self) -> str:
        """Backend URL without trailing slash."""
        return self.backend_url.rstrip("/")


@lru_cache
def get_settings() -> PortalSettings:
    """
    Get cached portal settings.

    Uses LRU cache to ensure settings are loaded only once.

    Returns:
        PortalSettings: Portal settings instance.
    """
    return PortalSettings()
