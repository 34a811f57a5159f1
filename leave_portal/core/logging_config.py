"""
Logging Configuration Module.

Provides centralized logging setup with rotating file handler.
Includes automatic masking of sensitive data (passwords, bearer tokens,
2FA codes, cookies, emails) so credentials flowing through the login
sequence never reach the log files.
"""

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


# --- Constants ---
LOG_FILENAME = "leave_portal.log"
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# --- Sensitive Data Patterns ---
SENSITIVE_PATTERNS = [
    # Key-value pairs with sensitive keys (password=xxx, token: xxx, code=123456)
    (
        re.compile(
            r"\b(password|secret|token|access_token|accessToken|api_key|"
            r"authorization|cookie|credential|security_key|"
            r"code|twoFactorCode|two_factor_code)\s*[:=]\s*['\"]?([^'\"\s&,}]+)['\"]?",
            re.IGNORECASE
        ),
        r"\1=***"
    ),
    # Bearer tokens in headers (including full JWT with dots)
    (
        re.compile(r"(Bearer\s+)([A-Za-z0-9\-_\.]+)", re.IGNORECASE),
        r"\1***"
    ),
    # JWT tokens standalone (eyJ...)
    (
        re.compile(r"\b(eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+)\b"),
        r"[JWT:***]"
    ),
    # URL query parameters with sensitive names
    (
        re.compile(
            r"([?&])(token|key|secret|password|access_token|code)=([^&\s]+)",
            re.IGNORECASE
        ),
        r"\1\2=***"
    ),
    # Email addresses (partial mask: first 2 chars + *** + @domain)
    (
        re.compile(r"\b([a-zA-Z0-9._%+-]{2})([a-zA-Z0-9._%+-]*)(@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b"),
        r"\1***\3"
    ),
]


class SensitiveDataFormatter(logging.Formatter):
    """
    Log formatter that masks sensitive data.

    Automatically detects and masks:
    - Passwords, tokens, secrets, 2FA codes
    - Authorization headers (Bearer tokens)
    - Sensitive URL query parameters
    - Email addresses (partial masking)
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record, masking any sensitive data."""
        masked_msg = super().format(record)
        for pattern, replacement in SENSITIVE_PATTERNS:
            masked_msg = pattern.sub(replacement, masked_msg)
        return masked_msg


def get_log_path(log_dir: str | None = None) -> Path:
    """
    Get the path for log files.

    Args:
        log_dir: Directory for log files. Defaults to ./logs under the project root.
    """
    if log_dir:
        logs_dir = Path(log_dir)
    else:
        logs_dir = Path(__file__).resolve().parent.parent.parent / "logs"

    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir / LOG_FILENAME


def setup_logging(log_level: int | str = logging.INFO, log_dir: str | None = None) -> None:
    """
    Configure application logging with rotation.

    Args:
        log_level: The logging level (default: logging.INFO).
        log_dir: Optional directory for the rotating log file.
    """
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    log_file_path = get_log_path(log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    formatter = SensitiveDataFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # --- File Handler (Rotating) ---
    file_handler = RotatingFileHandler(
        filename=str(log_file_path),
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.info(f"Logging initialized. Log file: {log_file_path}")

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
