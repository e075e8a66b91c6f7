"""Identity records and the users/profile rows that back them."""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from job_board.backend import AuthUser, BackendClient
from job_board.errors import JobBoardError, NotFound

logger = logging.getLogger("job_board.auth")

JOB_SEEKER = "job_seeker"
EMPLOYER = "employer"
ROLES = (JOB_SEEKER, EMPLOYER)

PROFILE_TABLES = {
    JOB_SEEKER: "job_seeker_profiles",
    EMPLOYER: "employer_profiles",
}


@dataclass
class Identity:
    id: str
    email: str
    role: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        if not data.get("id"):
            raise ValueError("identity is missing an id")
        role = data.get("role")
        return cls(id=data["id"], email=data.get("email") or "", role=role if role in ROLES else None)


def fetch_user_row(client: BackendClient, user_id: str, token: Optional[str] = None) -> Optional[dict]:
    """The users row for ``user_id``, or None when there is none."""
    try:
        return client.select_one("users", {"id": user_id}, token=token)
    except NotFound:
        return None


def infer_role(client: BackendClient, user_id: str, token: Optional[str] = None) -> Optional[str]:
    """Guess the role from which kind of profile row exists."""
    for role in ROLES:
        rows = client.select(PROFILE_TABLES[role], {"user_id": user_id}, limit=1, token=token)
        if rows:
            return role
    return None


def insert_user_row(
    client: BackendClient,
    user: AuthUser,
    role: Optional[str],
    fields: Optional[dict] = None,
    token: Optional[str] = None,
) -> dict:
    fields = fields or {}
    row = {
        "id": user.id,
        "email": user.email,
        "role": role,
        "first_name": fields.get("first_name") or "",
        "last_name": fields.get("last_name") or "",
        "company_name": fields.get("company_name") or "",
        "company_website": fields.get("company_website") or "",
        "company_description": fields.get("company_description") or "",
        "industry": fields.get("industry") or "",
    }
    return client.insert("users", [row], token=token)[0]


def resolve_role(client: BackendClient, user: AuthUser, token: Optional[str] = None) -> Optional[str]:
    """Look the role up in users; otherwise infer it and backfill the users row.

    ``token`` is the signed-in session, so the lookups pass row-level security.
    """
    try:
        row = fetch_user_row(client, user.id, token)
    except JobBoardError as e:
        logger.error("Error fetching user role for %s: %s", user.id, e.message)
        row = None
    if row is not None:
        return row.get("role")

    try:
        role = infer_role(client, user.id, token)
    except JobBoardError as e:
        logger.error("Error inferring role for %s: %s", user.id, e.message)
        return None

    try:
        insert_user_row(client, user, role, token=token)
        logger.info("Created missing users row for %s (role=%s)", user.id, role)
    except JobBoardError as e:
        logger.warning("Could not create users row for %s: %s", user.id, e.message)
    return role


def create_profile(client: BackendClient, user: AuthUser, role: str, fields: dict, token: Optional[str] = None) -> dict:
    """Create (or refresh) the role's profile row from registration fields."""
    if role == EMPLOYER:
        row = {
            "user_id": user.id,
            "email": user.email,
            "company_name": fields.get("company_name") or "Company",
            "company_website": fields.get("company_website") or "",
            "company_description": fields.get("company_description") or "",
            "industry": fields.get("industry") or "",
            "contact_first_name": fields.get("first_name") or "Contact",
            "contact_last_name": fields.get("last_name") or "Person",
        }
    elif role == JOB_SEEKER:
        row = {
            "user_id": user.id,
            "email": user.email,
            "first_name": fields.get("first_name") or "New",
            "last_name": fields.get("last_name") or "User",
            "headline": fields.get("headline") or "",
            "bio": fields.get("bio") or "",
        }
    else:
        raise ValueError(f"Unsupported role for profile creation: {role}")
    return client.upsert(PROFILE_TABLES[role], row, on_conflict="user_id", token=token)
