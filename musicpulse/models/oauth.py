"""
Domain models for Spotify OAuth tokens held in the user session.
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, Field

TOKEN_REFRESH_BUFFER_MS = 5 * 60 * 1000


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class TokenRecord(BaseModel):
    """Bearer credentials obtained from the Spotify token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: int = Field(..., description="Absolute expiry in epoch milliseconds.")

    @classmethod
    def from_lifetime(
        cls,
        *,
        access_token: str,
        expires_in: int,
        refresh_token: Optional[str] = None,
        issued_at_ms: Optional[int] = None,
    ) -> "TokenRecord":
        issued = now_ms() if issued_at_ms is None else issued_at_ms
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=issued + int(expires_in) * 1000,
        )

    def is_valid(self, at_ms: Optional[int] = None) -> bool:
        """True while the token is usable outside the refresh buffer."""
        current = now_ms() if at_ms is None else at_ms
        return bool(self.access_token) and current < self.expires_at - TOKEN_REFRESH_BUFFER_MS


__all__ = ["TOKEN_REFRESH_BUFFER_MS", "TokenRecord", "now_ms"]
