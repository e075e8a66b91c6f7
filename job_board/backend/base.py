"""Backend collaborator interface: auth, equality-filtered tables, object storage."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger("job_board.backend")

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthListener = Callable[[str, "AuthSession"], None]


@dataclass
class AuthUser:
    id: str
    email: str
    email_confirmed: bool = False


@dataclass
class AuthSession:
    access_token: str
    user: Optional[AuthUser]


@dataclass
class AuthResult:
    """Outcome of sign-up / sign-in / verification. Either field may be None."""

    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None


class BackendClient:
    """Surface of the hosted platform consumed by the job board.

    Implementations raise members of ``job_board.errors`` only, passing the
    platform's own messages through unchanged.
    """

    def __init__(self):
        self._listeners: list[AuthListener] = []

    # --- Auth -------------------------------------------------------------

    def sign_up(self, email: str, password: str, redirect_to: Optional[str] = None) -> AuthResult:
        raise NotImplementedError

    def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        raise NotImplementedError

    def verify_otp(self, email: str, token: str, type: str = "signup") -> AuthResult:
        raise NotImplementedError

    def exchange_code_for_session(self, code: str) -> AuthResult:
        raise NotImplementedError

    def get_user(self, access_token: str) -> AuthUser:
        raise NotImplementedError

    def sign_out(self, access_token: str) -> None:
        raise NotImplementedError

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register a session-change listener; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, session: AuthSession) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth state listener failed for %s", event)

    # --- Tables -----------------------------------------------------------

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        token: Optional[str] = None,
    ) -> list[dict]:
        raise NotImplementedError

    def select_one(self, table: str, filters: dict[str, Any], token: Optional[str] = None) -> dict:
        """Exactly one row or ``NotFound`` / ``RemoteFailure("Multiple objects found")``."""
        raise NotImplementedError

    def insert(self, table: str, rows: list[dict], token: Optional[str] = None) -> list[dict]:
        raise NotImplementedError

    def upsert(self, table: str, row: dict, on_conflict: str, token: Optional[str] = None) -> dict:
        raise NotImplementedError

    def delete(self, table: str, filters: dict[str, Any], token: Optional[str] = None) -> int:
        raise NotImplementedError

    # --- Storage ----------------------------------------------------------

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        raise NotImplementedError

    def get_public_url(self, bucket: str, path: str) -> str:
        raise NotImplementedError

    def close(self) -> None:
        pass
