"""Per-visitor auth state: identity cache, sign-up cooldown, and the session ops."""

import json
import logging
import math
import threading
import time
from collections.abc import MutableMapping
from contextlib import contextmanager
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from job_board.backend import SIGNED_IN, SIGNED_OUT, AuthSession, BackendClient
from job_board.config import AuthConfig
from job_board.errors import (
    ConfigurationMissing,
    InvalidCredentials,
    JobBoardError,
    NetworkError,
    NotAuthenticated,
    RateLimited,
)
from job_board.utils.dates import parse_timestamp, utcnow

from . import registration as registration_flow
from .accounts import Identity, resolve_role

logger = logging.getLogger("job_board.auth")

USER_KEY = "jobfinder_user"
RATE_LIMIT_KEY = "jobfinder_rate_limit"

_email_locks: dict[str, list] = {}
_email_locks_guard = threading.Lock()


@contextmanager
def _email_lock(email: str):
    """Serialize registration for one email across every store in the process."""
    key = email.strip().lower()
    with _email_locks_guard:
        entry = _email_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _email_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                _email_locks.pop(key, None)


class StoreState(str, Enum):
    INIT = "init"
    HYDRATED = "hydrated"
    RECONCILED = "reconciled"
    READY = "ready"


class AuthStore:
    """Holds who is signed in for one visitor and runs login/logout/registration.

    ``storage`` is the visitor's persisted key/value state (the session
    cookie in the web app, a plain dict in tests). The backend ``client`` may
    be None when it is not configured; read-only state still works but every
    operation that needs the backend raises ``ConfigurationMissing``.
    """

    def __init__(
        self,
        client: Optional[BackendClient],
        storage: MutableMapping,
        config: Optional[AuthConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.storage = storage
        self.config = config or AuthConfig()
        self.now = now or utcnow
        self.sleep = sleep

        self.current_identity: Optional[Identity] = None
        self.access_token: Optional[str] = None
        self.is_loading = False
        self.is_rate_limited = False
        self.rate_limit_reset_at: Optional[datetime] = None
        self.state = StoreState.INIT

        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    # --- Lifecycle --------------------------------------------------------

    def start(self, reconcile: bool = True) -> "AuthStore":
        self.hydrate()
        if reconcile:
            self.reconcile()
        if self.client is not None and self._unsubscribe is None:
            self._unsubscribe = self.client.on_auth_state_change(self._on_auth_event)
        self.state = StoreState.READY
        return self

    def hydrate(self) -> None:
        """Load the cached identity and cooldown, discarding anything unreadable."""
        raw_user = self.storage.get(USER_KEY)
        if raw_user:
            try:
                data = json.loads(raw_user)
                self.current_identity = Identity.from_dict(data)
                self.access_token = data.get("accessToken")
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("Discarding unreadable cached user: %s", e)
                self.storage.pop(USER_KEY, None)
                self.current_identity = None
                self.access_token = None

        raw_limit = self.storage.get(RATE_LIMIT_KEY)
        if raw_limit:
            try:
                data = json.loads(raw_limit)
                reset_at = parse_timestamp(data["resetTime"])
                limited = bool(data.get("limited"))
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                logger.warning("Discarding unreadable rate-limit state: %s", e)
                self.storage.pop(RATE_LIMIT_KEY, None)
            else:
                if limited and reset_at is not None and reset_at > self.now():
                    self.is_rate_limited = True
                    self.rate_limit_reset_at = reset_at
                else:
                    self._clear_cooldown()

        self.state = StoreState.HYDRATED

    def reconcile(self) -> None:
        """Confirm the cached identity still has a live backend session."""
        if self.current_identity is not None and self.client is not None:
            if not self.access_token:
                self._clear_identity()
            else:
                try:
                    user = self.client.get_user(self.access_token)
                except NetworkError as e:
                    # Keep the cache; the next request will try again
                    logger.warning("Could not reach backend to check session: %s", e.message)
                except JobBoardError as e:
                    logger.info("Cached session for %s is no longer valid: %s", self.current_identity.id, e.message)
                    self._clear_identity()
                else:
                    if user.id != self.current_identity.id:
                        logger.warning("Cached identity does not match session user; clearing")
                        self._clear_identity()
        self.state = StoreState.RECONCILED

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_auth_event(self, event: str, session: AuthSession) -> None:
        # The client is shared across visitors, so only react to our own session
        if event == SIGNED_OUT:
            if self.access_token and session.access_token == self.access_token:
                self._clear_identity()
        elif event == SIGNED_IN:
            identity = self.current_identity
            if identity is not None and session.user is not None and session.user.id == identity.id:
                updated = Identity(id=identity.id, email=session.user.email or identity.email, role=identity.role)
                self.set_identity(updated, session.access_token)

    # --- State ------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.current_identity is not None

    def snapshot(self) -> dict:
        return {
            "user": self.current_identity.to_dict() if self.current_identity else None,
            "isLoading": self.is_loading,
            "isRateLimited": self.is_rate_limited,
            "rateLimitResetAt": self.rate_limit_reset_at.isoformat() if self.rate_limit_reset_at else None,
        }

    def require_client(self) -> BackendClient:
        if self.client is None:
            raise ConfigurationMissing("The backend is not configured. Please try again later.")
        return self.client

    def set_identity(self, identity: Identity, access_token: Optional[str]) -> None:
        self.current_identity = identity
        self.access_token = access_token
        self.storage[USER_KEY] = json.dumps({**identity.to_dict(), "accessToken": access_token})

    def _clear_identity(self) -> None:
        self.current_identity = None
        self.access_token = None
        self.storage.pop(USER_KEY, None)

    def check_cooldown(self) -> None:
        """Raise ``RateLimited`` while a sign-up cooldown is still running."""
        if not self.is_rate_limited:
            return
        now = self.now()
        if self.rate_limit_reset_at is None or self.rate_limit_reset_at <= now:
            self._clear_cooldown()
            return
        remaining = (self.rate_limit_reset_at - now).total_seconds()
        minutes = math.ceil(remaining / 60)
        raise RateLimited(
            f"Too many signup attempts. Please try again in {minutes} minute(s) or contact support.",
            retry_after=remaining,
        )

    def start_cooldown(self) -> datetime:
        reset_at = self.now() + timedelta(minutes=self.config.rate_limit_cooldown_minutes)
        self.is_rate_limited = True
        self.rate_limit_reset_at = reset_at
        self.storage[RATE_LIMIT_KEY] = json.dumps({"limited": True, "resetTime": reset_at.isoformat()})
        return reset_at

    def _clear_cooldown(self) -> None:
        self.is_rate_limited = False
        self.rate_limit_reset_at = None
        self.storage.pop(RATE_LIMIT_KEY, None)

    @contextmanager
    def _busy(self):
        with self._lock:
            self.is_loading = True
            try:
                yield
            finally:
                self.is_loading = False

    # --- Operations -------------------------------------------------------

    def login(self, email: str, password: str) -> Identity:
        client = self.require_client()
        email = email.strip().lower()
        with self._busy():
            try:
                result = client.sign_in_with_password(email, password)
            except NetworkError:
                raise
            except JobBoardError as e:
                logger.warning("Login failed for %s: %s", email, e.message)
                raise InvalidCredentials("Invalid email or password") from e
            if result.session is None or result.user is None:
                raise InvalidCredentials("Invalid email or password")

            role = resolve_role(client, result.user, result.session.access_token)
            identity = Identity(id=result.user.id, email=result.user.email or email, role=role)
            self.set_identity(identity, result.session.access_token)
            logger.info("User %s signed in (role=%s)", identity.id, role)
            return identity

    def logout(self) -> None:
        """Forget the local identity, then end the backend session if possible."""
        token = self.access_token
        self._clear_identity()
        if self.client is None or not token:
            return
        try:
            self.client.sign_out(token)
        except JobBoardError as e:
            logger.warning("Backend sign-out failed: %s", e.message)

    def register(self, registration: registration_flow.RegistrationData) -> registration_flow.RegistrationOutcome:
        with _email_lock(registration.email), self._busy():
            return registration_flow.register(self, registration)

    def verify_otp(self, email: str, code: str) -> registration_flow.RegistrationOutcome:
        client = self.require_client()
        email = email.strip().lower()
        with self._busy():
            try:
                result = client.verify_otp(email, code.strip(), type="signup")
            except (InvalidCredentials, NotAuthenticated) as e:
                logger.warning("Verification code rejected for %s: %s", email, e.message)
                raise
            return registration_flow.complete_verification(self, result)

    def complete_from_code(self, code: str) -> registration_flow.RegistrationOutcome:
        """Finish sign-up from the email link's one-time code."""
        client = self.require_client()
        with self._busy():
            result = client.exchange_code_for_session(code)
            return registration_flow.complete_verification(self, result)
