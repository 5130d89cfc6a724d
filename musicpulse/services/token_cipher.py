"""Symmetric encryption for Spotify tokens kept in the session cookie."""

from __future__ import annotations

import base64
import hashlib
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken

from musicpulse.models import TokenRecord


class TokenCipherService:
    """Encrypt bearer credentials with a Fernet key derived from a secret.

    The session cookie is signed but readable by the browser, so access and
    refresh tokens only ever enter it as ciphertext.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Failed to decrypt token; invalid ciphertext provided.") from exc
        return plaintext.decode("utf-8")

    def seal(self, record: TokenRecord) -> Dict[str, Any]:
        """Session-safe representation of a token record."""
        sealed: Dict[str, Any] = {
            "accessToken": self.encrypt(record.access_token),
            "expiresAt": record.expires_at,
        }
        if record.refresh_token:
            sealed["refreshToken"] = self.encrypt(record.refresh_token)
        return sealed

    def unseal(self, sealed: Dict[str, Any]) -> TokenRecord:
        """Inverse of ``seal``; raises ``ValueError`` on tampered input."""
        try:
            access = sealed["accessToken"]
            expires_at = int(sealed["expiresAt"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError("Malformed session token record.") from exc
        refresh = sealed.get("refreshToken")
        return TokenRecord(
            access_token=self.decrypt(access),
            refresh_token=self.decrypt(refresh) if refresh else None,
            expires_at=expires_at,
        )


__all__ = ["TokenCipherService"]
