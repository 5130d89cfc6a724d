"""Public schema exports."""

from .auth import AuthError, AuthResult, AuthStatus, utc_timestamp

__all__ = ["AuthError", "AuthResult", "AuthStatus", "utc_timestamp"]
