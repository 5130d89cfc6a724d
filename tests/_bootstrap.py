"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "APP_ENV": "test",
    "YOUTUBE_API_KEY": "test-youtube-key",
    "SPOTIFY_CLIENT_ID": "test-client-id",
    "SPOTIFY_CLIENT_SECRET": "test-client-secret",
    "SPOTIFY_REDIRECT_URI": "http://localhost:3000/api/auth/callback",
    "SPOTIFY_SCOPES": "user-read-private,playlist-read-private",
    "SPOTIFY_WARM_UP": "false",
    "SESSION_SECRET": "test-session-secret",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "DOCUMENT_STORE_PATH": str(Path(tempfile.gettempdir()) / "musicpulse-test.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
