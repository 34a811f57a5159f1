"""
Sealed Cookie Module.

Provides AES-256-GCM sealing for values the portal keeps in browser
cookies (the bearer token and the email awaiting 2FA verification).
The browser only ever sees an opaque, authenticated blob.

Security Features:
- AES-256-GCM encryption with random nonces (non-deterministic)
- Cookie name bound as associated data, so a sealed token cannot be
  replayed as a different cookie
- Key taken from LEAVE_PORTAL_SECURITY_KEY (hex, 32 bytes)
"""

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from leave_portal.core.config import PortalSettings

logger = logging.getLogger(__name__)

NONCE_SIZE = 12


class CookieSealer:
    """
    Seals and unseals cookie values using AES-256-GCM.
    """

    def __init__(self, key: bytes) -> None:
        """
        Initialize the sealer.

        Args:
            key: 32-byte encryption key.

        Raises:
            ValueError: If the key is not 32 bytes.
        """
        if len(key) != 32:
            raise ValueError("Encryption key must be exactly 32 bytes (256 bits)")

        self._cipher = AESGCM(key)

    @classmethod
    def from_settings(cls, settings: PortalSettings) -> "CookieSealer":
        """
        Build a sealer from portal settings.

        Without a configured key a random one is generated; cookies then
        stop being readable when the process restarts.
        """
        security_key = settings.security_key.get_secret_value()

        if not security_key:
            logger.warning(
                "LEAVE_PORTAL_SECURITY_KEY not set. Using an ephemeral key; "
                "sessions will not survive a restart. Generate with: openssl rand -hex 32"
            )
            return cls(os.urandom(32))

        try:
            key = bytes.fromhex(security_key)
        except ValueError as e:
            raise ValueError("LEAVE_PORTAL_SECURITY_KEY must be hex encoded") from e

        return cls(key)

    def seal(self, plaintext: str, purpose: str) -> str:
        """
        Encrypt a value for storage in a cookie.

        Args:
            plaintext: Value to protect.
            purpose: Cookie name; bound as associated data.

        Returns:
            Unpadded URL-safe base64 string (nonce + ciphertext + tag).
        """
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._cipher.encrypt(nonce, plaintext.encode("utf-8"), purpose.encode("utf-8"))
        return base64.urlsafe_b64encode(nonce + ciphertext).rstrip(b"=").decode("ascii")

    def unseal(self, sealed: str | None, purpose: str) -> str | None:
        """
        Decrypt a cookie value.

        Returns:
            The plaintext, or None when the value is missing, tampered with,
            sealed with another key or sealed for another purpose.
        """
        if not sealed:
            return None

        try:
            padded = sealed + "=" * (-len(sealed) % 4)
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        except (binascii.Error, ValueError, UnicodeEncodeError):
            logger.warning(f"Malformed {purpose} cookie ignored")
            return None

        if len(raw) <= NONCE_SIZE:
            return None

        try:
            plaintext = self._cipher.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], purpose.encode("utf-8"))
        except InvalidTag:
            logger.warning(f"Unreadable {purpose} cookie ignored")
            return None

        return plaintext.decode("utf-8")
