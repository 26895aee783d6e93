"""Staff token authentication for back-office endpoints."""

from __future__ import annotations

import secrets
from threading import Lock
from typing import Optional

from backend.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class StaffTokenNotConfiguredError(AuthenticationError):
    """Raised when ADMIN_TOKEN is missing."""


class InvalidStaffTokenError(AuthenticationError):
    """Raised when a provided token is invalid."""


class AuthService:
    """Exchanges the shared staff token for per-login bearer tokens."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._sessions: set[str] = set()
        self._lock = Lock()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_token(self) -> str:
        if not self._settings.admin_token:
            raise StaffTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured. Set ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(self, provided_token: str) -> str:
        expected = self._expected_token()
        if not secrets.compare_digest(provided_token, expected):
            raise InvalidStaffTokenError("Invalid staff token")
        session_token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions.add(session_token)
        return session_token

    def logout(self, bearer_token: str) -> None:
        with self._lock:
            self._sessions.discard(bearer_token)

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        with self._lock:
            valid = any(secrets.compare_digest(bearer_token, token) for token in self._sessions)
        if not valid:
            raise InvalidStaffTokenError("Invalid or expired bearer token. Login first.")
