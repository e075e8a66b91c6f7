"""Profile request handlers for job seekers and employers.

Both kinds share one shape: GET by ``userId`` returns the profile in the
form's field names (blank strings when nothing is stored), POST upserts it.
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from job_board.auth.accounts import PROFILE_TABLES
from job_board.backend import BackendClient
from job_board.errors import JobBoardError, NotFound

from .dependencies import require_backend

logger = logging.getLogger("job_board.web.profile")

router = APIRouter(prefix="/api/profile")

# Object names are built from the user id, so it must be a single path segment
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class ProfileKind:
    label: str
    table: str
    fields: dict[str, str]  # form name -> column
    user_fallback: tuple[str, ...]  # form names copied from the users row
    uploads: dict[str, str]  # form name -> storage bucket


JOB_SEEKER_KIND = ProfileKind(
    label="job seeker",
    table=PROFILE_TABLES["job_seeker"],
    fields={
        "firstName": "first_name",
        "lastName": "last_name",
        "email": "email",
        "professionalHeadline": "headline",
        "bio": "bio",
        "phoneNumber": "phone_number",
        "profilePictureUrl": "profile_picture_url",
        "resumeUrl": "resume_url",
        "websiteUrl": "website_url",
        "linkedinUrl": "linkedin_url",
        "githubUrl": "github_url",
    },
    user_fallback=("email",),
    uploads={"profilePictureUrl": "profile-pictures", "resumeUrl": "resumes"},
)

EMPLOYER_KIND = ProfileKind(
    label="employer",
    table=PROFILE_TABLES["employer"],
    fields={
        "companyName": "company_name",
        "email": "email",
        "companyWebsite": "company_website",
        "industry": "industry",
        "companyDescription": "company_description",
        "companyLogoUrl": "company_logo_url",
        "companySize": "company_size",
    },
    user_fallback=("email", "companyName", "companyWebsite", "industry", "companyDescription"),
    uploads={"companyLogoUrl": "company-logos"},
)

KINDS = {"job-seeker": JOB_SEEKER_KIND, "employer": EMPLOYER_KIND}


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _to_form(kind: ProfileKind, row: Optional[dict]) -> dict[str, str]:
    row = row or {}
    return {name: row.get(column) or "" for name, column in kind.fields.items()}


def load_profile(client: BackendClient, kind: ProfileKind, user_id: str) -> dict[str, str]:
    """The stored profile in form field names, falling back to the users row."""
    try:
        return _to_form(kind, client.select_one(kind.table, {"user_id": user_id}))
    except NotFound:
        pass

    try:
        user = client.select_one("users", {"id": user_id})
    except NotFound:
        return _to_form(kind, None)
    form = _to_form(kind, None)
    for name in kind.user_fallback:
        form[name] = user.get(kind.fields[name]) or ""
    return form


def save_profile(client: BackendClient, kind: ProfileKind, user_id: str, payload: dict[str, Any]) -> dict:
    row = {"user_id": user_id}
    for name, column in kind.fields.items():
        if name in payload:
            value = payload[name]
            row[column] = "" if value is None else value
    return client.upsert(kind.table, row, on_conflict="user_id")


def _get(kind: ProfileKind, client: BackendClient, user_id: Optional[str]):
    if not user_id:
        return _error("User ID is required", 400)
    try:
        return load_profile(client, kind, user_id)
    except JobBoardError as e:
        logger.error("Error fetching %s profile for %s: %s", kind.label, user_id, e.message)
        return _error(f"Error fetching {kind.label} profile", 500)


def _post(kind: ProfileKind, client: BackendClient, payload: dict[str, Any]):
    user_id = payload.get("userId")
    if not user_id:
        return _error("User ID is required", 400)
    try:
        save_profile(client, kind, user_id, payload)
    except JobBoardError as e:
        logger.error("Error updating %s profile for %s: %s", kind.label, user_id, e.message)
        return _error(e.message, 500)
    logger.info("Updated %s profile for %s", kind.label, user_id)
    return {"message": "Profile updated successfully"}


@router.get("/job-seeker")
def get_job_seeker_profile(userId: Optional[str] = None, client: BackendClient = Depends(require_backend)):
    return _get(JOB_SEEKER_KIND, client, userId)


@router.post("/job-seeker")
def update_job_seeker_profile(
    payload: dict[str, Any] = Body(...), client: BackendClient = Depends(require_backend)
):
    return _post(JOB_SEEKER_KIND, client, payload)


@router.get("/employer")
def get_employer_profile(userId: Optional[str] = None, client: BackendClient = Depends(require_backend)):
    return _get(EMPLOYER_KIND, client, userId)


@router.post("/employer")
def update_employer_profile(
    payload: dict[str, Any] = Body(...), client: BackendClient = Depends(require_backend)
):
    return _post(EMPLOYER_KIND, client, payload)


@router.post("/{kind_name}/upload")
def upload_profile_file(
    kind_name: str,
    userId: Optional[str] = None,
    field: str = "",
    file: UploadFile = File(...),
    client: BackendClient = Depends(require_backend),
):
    """Store a picture, resume or logo and point the profile at its public URL."""
    kind = KINDS.get(kind_name)
    if kind is None:
        return _error(f"Unknown profile type: {kind_name}", 404)
    if not userId:
        return _error("User ID is required", 400)
    if not USER_ID_PATTERN.match(userId):
        return _error("Invalid user ID", 400)
    bucket = kind.uploads.get(field)
    if bucket is None:
        return _error(f"Field {field or '(none)'} does not accept uploads", 400)

    ext = PurePosixPath(file.filename or "").suffix.lstrip(".").lower() or "bin"
    path = f"{userId}-{int(time.time() * 1000)}.{ext}"
    try:
        client.upload(bucket, path, file.file.read(), content_type=file.content_type or "application/octet-stream")
        url = client.get_public_url(bucket, path)
        save_profile(client, kind, userId, {field: url})
    except JobBoardError as e:
        logger.error("Upload to %s failed for %s: %s", bucket, userId, e.message)
        return _error(e.message, 500)
    logger.info("Uploaded %s/%s for %s", bucket, path, userId)
    return {"url": url}
