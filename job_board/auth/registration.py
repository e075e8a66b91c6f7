"""Account registration and email-verification completion.

A single attempt moves through::

    START -> SIGNUP_ATTEMPTED -> RATE_LIMITED | ALREADY_REGISTERED
                                | VERIFIED_PENDING | AUTHENTICATED | FAILED

Sign-up itself only creates the auth account. The users row and profile are
written later by ``complete_verification`` once the emailed OTP or link code
has been exchanged for a session; until then the role and profile fields wait
in ``pending_registrations``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from job_board.backend import AuthResult, AuthUser, BackendClient
from job_board.errors import (
    AlreadyRegistered,
    JobBoardError,
    NetworkError,
    NotAuthenticated,
    ProfileCreationFailed,
    RateLimited,
    RegistrationFailed,
)
from job_board.utils.retry import retry_with_backoff

from .accounts import EMPLOYER, JOB_SEEKER, Identity, create_profile, fetch_user_row, insert_user_row
from .schemas import EmployerRegistration, JobSeekerRegistration

if TYPE_CHECKING:
    from .store import AuthStore

logger = logging.getLogger("job_board.auth.registration")

RegistrationData = Union[JobSeekerRegistration, EmployerRegistration]

CHECK_EMAIL_MESSAGE = "Registration successful! Please check your email to verify your account."


class RegistrationState(str, Enum):
    START = "start"
    SIGNUP_ATTEMPTED = "signup_attempted"
    RATE_LIMITED = "rate_limited"
    ALREADY_REGISTERED = "already_registered"
    VERIFIED_PENDING = "verified_pending"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass
class RegistrationOutcome:
    state: RegistrationState
    identity: Optional[Identity] = None
    message: str = ""
    profile_error: Optional[ProfileCreationFailed] = None
    created: bool = False

    def to_dict(self) -> dict:
        return {
            "status": self.state.value,
            "user": self.identity.to_dict() if self.identity else None,
            "message": self.message,
            "warning": self.profile_error.message if self.profile_error else None,
        }


def is_rate_limit_error(error: Exception) -> bool:
    if isinstance(error, RateLimited):
        return True
    return "email rate limit exceeded" in str(error).lower()


def save_pending_registration(client: BackendClient, fields: dict) -> dict:
    """Stage role/profile fields, replacing any older pending row for the email."""
    email = fields["email"]
    client.delete("pending_registrations", {"email": email})
    row = {
        "email": email,
        "role": fields["role"],
        "first_name": fields.get("first_name", ""),
        "last_name": fields.get("last_name", ""),
        "headline": fields.get("headline", ""),
        "bio": fields.get("bio", ""),
        "company_name": fields.get("company_name", ""),
        "company_website": fields.get("company_website", ""),
        "company_description": fields.get("company_description", ""),
        "industry": fields.get("industry", ""),
    }
    return client.insert("pending_registrations", [row])[0]


def latest_pending_registration(client: BackendClient, email: str, token: Optional[str] = None) -> Optional[dict]:
    rows = client.select(
        "pending_registrations",
        {"email": email},
        order_by="created_at",
        descending=True,
        limit=1,
        token=token,
    )
    return rows[0] if rows else None


def register(store: "AuthStore", registration: RegistrationData) -> RegistrationOutcome:
    """Create the auth account and stage the profile data for verification."""
    store.check_cooldown()
    client = store.require_client()
    config = store.config
    fields = registration.pending_fields()

    def attempt_sign_up() -> AuthResult:
        return client.sign_up(
            registration.email,
            registration.password,
            redirect_to=config.email_redirect_to or None,
        )

    try:
        result = retry_with_backoff(
            attempt_sign_up,
            is_retryable=is_rate_limit_error,
            max_retries=config.signup_max_retries,
            base_delay=config.signup_base_delay_seconds,
            sleep=store.sleep,
        )
        if result.user is None:
            # Account may exist even though the creation response was lost
            try:
                result = client.sign_in_with_password(registration.email, registration.password)
            except JobBoardError as e:
                logger.error("Error checking for existing user %s: %s", registration.email, e.message)
                raise RegistrationFailed("Failed to register user") from e
            if result.user is None:
                raise RegistrationFailed("Failed to register user")
    except AlreadyRegistered:
        logger.warning("User already registered: %s", registration.email)
        return _recover_existing(store, registration, fields)
    except (RegistrationFailed, NetworkError):
        raise
    except JobBoardError as e:
        if not is_rate_limit_error(e):
            logger.error("Registration error for %s: %s", registration.email, e.message)
            raise RegistrationFailed(e.message or "Failed to register user") from e
        logger.warning("Email rate limit exceeded for: %s", registration.email)
        reset_at = store.start_cooldown()
        raise RateLimited(
            "Too many signup attempts. Please try again in "
            f"{config.rate_limit_cooldown_minutes} minutes or contact support if this persists.",
            retry_after=(reset_at - store.now()).total_seconds(),
        ) from e

    if result.session is not None:
        # Email confirmation is off (or the account was already confirmed)
        return complete_verification(store, result, fields)

    try:
        save_pending_registration(client, fields)
    except JobBoardError as e:
        logger.error("Error saving pending registration for %s: %s", registration.email, e.message)
        raise RegistrationFailed("Failed to save registration details. Please try again.") from e

    return RegistrationOutcome(RegistrationState.VERIFIED_PENDING, message=CHECK_EMAIL_MESSAGE)


def _recover_existing(store: "AuthStore", registration: RegistrationData, fields: dict) -> RegistrationOutcome:
    """Sign in with the supplied credentials instead of failing on an existing account."""
    client = store.require_client()
    try:
        result = client.sign_in_with_password(registration.email, registration.password)
    except JobBoardError as e:
        logger.error("Sign-in attempt for existing user %s failed: %s", registration.email, e.message)
        raise AlreadyRegistered("User already registered. Please sign in instead.") from e
    if result.session is None:
        raise AlreadyRegistered("User already registered. Please sign in instead.")
    return complete_verification(store, result, fields)


def complete_verification(
    store: "AuthStore",
    result: AuthResult,
    fields: Optional[dict] = None,
) -> RegistrationOutcome:
    """Materialize the users row and profile for a freshly verified session.

    ``fields`` are the registration fields when known in-process; otherwise
    the newest pending registration for the email is used, defaulting the role
    to job seeker. A failed profile write is reported as a warning and the
    account is kept.
    """
    client = store.require_client()
    session = result.session
    if session is None or session.user is None:
        raise NotAuthenticated("No user found in session. Please try again.")
    user: AuthUser = session.user

    existing = fetch_user_row(client, user.id, session.access_token)
    if existing is not None:
        identity = Identity(id=user.id, email=existing.get("email") or user.email, role=existing.get("role"))
        store.set_identity(identity, session.access_token)
        return RegistrationOutcome(RegistrationState.AUTHENTICATED, identity=identity, message="Signed in.")

    if fields is None:
        fields = latest_pending_registration(client, user.email, session.access_token) or {}
    role = fields.get("role") if fields.get("role") in (JOB_SEEKER, EMPLOYER) else JOB_SEEKER

    try:
        insert_user_row(client, user, role, fields, token=session.access_token)
    except JobBoardError as e:
        logger.error("Error creating user record for %s: %s", user.id, e.message)
        raise RegistrationFailed("Error creating user account. Please contact support.") from e

    profile_error = None
    try:
        create_profile(client, user, role, fields, token=session.access_token)
    except JobBoardError as e:
        # Not rolled back: the users row stays and the profile can be completed later
        logger.error("Error creating %s profile for %s: %s", role, user.id, e.message)
        profile_error = ProfileCreationFailed(
            "Your account was created, but there was an issue with your profile. "
            "Please complete your profile."
        )

    try:
        client.delete("pending_registrations", {"email": user.email}, token=session.access_token)
    except JobBoardError as e:
        logger.warning("Could not clean up pending registration for %s: %s", user.email, e.message)

    identity = Identity(id=user.id, email=user.email, role=role)
    store.set_identity(identity, session.access_token)
    label = "employer" if role == EMPLOYER else "job seeker"
    return RegistrationOutcome(
        RegistrationState.AUTHENTICATED,
        identity=identity,
        message=f"Your {label} account has been successfully created!",
        profile_error=profile_error,
        created=True,
    )
