"""Job listing routes."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from job_board.auth.store import AuthStore
from job_board.backend import BackendClient
from job_board.listings.service import (
    create_posting,
    fetch_posting_detail,
    fetch_postings,
    filter_by_location,
    parse_posting_form,
)

from .dependencies import get_auth_store, require_backend

router = APIRouter(prefix="/api/jobs")


@router.get("")
def list_jobs(location: Optional[str] = None, client: BackendClient = Depends(require_backend)):
    postings = fetch_postings(client)
    return {"jobs": filter_by_location(postings, location)}


@router.get("/{posting_id}")
def job_detail(posting_id: str, client: BackendClient = Depends(require_backend)):
    return fetch_posting_detail(client, posting_id)


@router.post("", status_code=201)
def post_job(
    payload: dict[str, Any] = Body(...),
    client: BackendClient = Depends(require_backend),
    store: AuthStore = Depends(get_auth_store),
):
    form = parse_posting_form(payload)
    return create_posting(client, store.current_identity, form, token=store.access_token)
