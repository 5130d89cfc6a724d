"""Schemas for the Spotify auth endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuthResult(BaseModel):
    """Successful callback or refresh."""

    success: bool = True
    message: str
    timestamp: str = Field(default_factory=utc_timestamp)


class AuthError(BaseModel):
    error: str
    details: Optional[str] = None
    timestamp: str = Field(default_factory=utc_timestamp)


class AuthStatus(BaseModel):
    authenticated: bool
    timestamp: str = Field(default_factory=utc_timestamp)


__all__ = ["AuthError", "AuthResult", "AuthStatus", "utc_timestamp"]
