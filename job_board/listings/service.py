"""Job posting queries, the posting form, and employer posting creation."""

import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from job_board.auth.accounts import EMPLOYER, Identity
from job_board.auth.schemas import field_errors
from job_board.backend import BackendClient
from job_board.errors import Forbidden, JobBoardError, NotAuthenticated, NotFound, RemoteFailure, ValidationFailure
from job_board.utils.dates import parse_timestamp, utcnow

logger = logging.getLogger("job_board.listings")

POSTINGS_TABLE = "job_postings"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def is_expired(posting: dict, now: datetime) -> bool:
    expires_at = parse_timestamp(posting.get("expires_at"))
    return expires_at is not None and expires_at <= now


def _recency_key(posting: dict) -> tuple:
    updated = parse_timestamp(posting.get("updated_at")) or _EPOCH
    created = parse_timestamp(posting.get("created_at")) or _EPOCH
    return (updated, created)


def fetch_postings(client: BackendClient, now: Optional[datetime] = None) -> list[dict]:
    """All unexpired postings, most recently updated first."""
    now = now or utcnow()
    try:
        rows = client.select(POSTINGS_TABLE, order_by="created_at", descending=True)
    except JobBoardError as e:
        logger.error("Error fetching job postings: %s", e.message)
        raise RemoteFailure(f"Failed to fetch jobs: {e.message}") from e
    postings = [row for row in rows if not is_expired(row, now)]
    postings.sort(key=_recency_key, reverse=True)
    return postings


def filter_by_location(postings: list[dict], text: Optional[str]) -> list[dict]:
    """Case-insensitive substring match on location; blank text keeps everything."""
    needle = (text or "").strip().lower()
    if not needle:
        return list(postings)
    return [p for p in postings if needle in (p.get("location") or "").lower()]


def fetch_posting_detail(client: BackendClient, posting_id: str) -> dict:
    try:
        posting = client.select_one(POSTINGS_TABLE, {"id": posting_id})
    except NotFound as e:
        raise NotFound(f"Job with ID {posting_id} not found.") from e
    except JobBoardError as e:
        logger.error("Error fetching job %s: %s", posting_id, e.message)
        raise RemoteFailure(f"Failed to fetch job details. Error: {e.message or 'Unknown error'}.") from e

    detail = dict(posting)
    detail["employer_company_name"] = None
    employer_id = posting.get("employer_user_id")
    if employer_id:
        try:
            rows = client.select("employer_profiles", {"user_id": employer_id}, limit=1)
        except JobBoardError as e:
            logger.warning("Could not load employer profile for job %s: %s", posting_id, e.message)
            rows = []
        if rows:
            detail["employer_company_name"] = rows[0].get("company_name")
    if not detail.get("company_name") and detail["employer_company_name"]:
        detail["company_name"] = detail["employer_company_name"]
    return detail


def _length(label: str, value: str, low: int, high: int) -> str:
    if len(value) < low:
        raise ValueError(f"{label} must be at least {low} characters.")
    if len(value) > high:
        raise ValueError(f"{label} must be {high} characters or less.")
    return value


class JobPostingForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str
    company_name: str
    location: str
    description: str
    application_instructions: str
    employment_type: Literal["Full-time", "Part-time", "Contract", "Internship", "Temporary"]
    experience_level: Literal["Entry-level", "Mid-level", "Senior-level"]
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: Literal["USD", "EUR"] = "USD"
    expires_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _length("Job title", v, 2, 100)

    @field_validator("company_name")
    @classmethod
    def _company_name(cls, v: str) -> str:
        return _length("Company name", v, 2, 100)

    @field_validator("location")
    @classmethod
    def _location(cls, v: str) -> str:
        return _length("Location", v, 2, 100)

    @field_validator("description")
    @classmethod
    def _description(cls, v: str) -> str:
        return _length("Description", v, 10, 5000)

    @field_validator("application_instructions")
    @classmethod
    def _instructions(cls, v: str) -> str:
        return _length("Application instructions", v, 10, 1000)

    @field_validator("salary_min", "salary_max", "expires_at", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        return None if v == "" else v

    @field_validator("salary_min", "salary_max")
    @classmethod
    def _positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("Must be positive")
        return v

    @field_validator("salary_max")
    @classmethod
    def _range(cls, v: Optional[float], info) -> Optional[float]:
        low = info.data.get("salary_min")
        if v is not None and low is not None and v < low:
            raise ValueError("Maximum salary must be greater than or equal to minimum salary")
        return v

    def to_row(self) -> dict:
        row = self.model_dump()
        row["expires_at"] = self.expires_at.isoformat() if self.expires_at else None
        return row


def parse_posting_form(data: dict) -> JobPostingForm:
    try:
        return JobPostingForm.model_validate(data)
    except ValidationError as e:
        raise ValidationFailure(field_errors=field_errors(e)) from e


def create_posting(
    client: BackendClient,
    identity: Optional[Identity],
    form: JobPostingForm,
    token: Optional[str] = None,
) -> dict:
    """Insert a posting owned by the signed-in employer, as that employer."""
    if identity is None:
        raise NotAuthenticated("Please sign in to post a job.")
    if identity.role != EMPLOYER:
        raise Forbidden("Only employers can post jobs.")

    row = form.to_row()
    row["employer_user_id"] = identity.id
    try:
        created = client.insert(POSTINGS_TABLE, [row], token=token)[0]
    except JobBoardError as e:
        logger.error("Error inserting job posting for %s: %s", identity.id, e.message)
        raise RemoteFailure(f"Failed to post job: {e.message}. Please try again.") from e
    logger.info("Employer %s posted job %s", identity.id, created.get("id"))
    return created
