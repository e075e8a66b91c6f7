"""Authentication routes: register, verify, login, logout, email-link callback."""

import logging
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Depends
from fastapi.responses import RedirectResponse

from job_board.auth.accounts import EMPLOYER
from job_board.auth.schemas import LoginRequest, VerifyRequest, parse_registration
from job_board.auth.store import AuthStore
from job_board.errors import InvalidCredentials, JobBoardError

from .dependencies import get_auth_store

logger = logging.getLogger("job_board.web.auth")

router = APIRouter()


def _redirect(path: str, message: str = "", status: str = "") -> RedirectResponse:
    if message:
        path = f"{path}?{urlencode({'message': message, 'status': status})}"
    return RedirectResponse(path, status_code=303)


@router.post("/api/auth/register")
def register(payload: dict[str, Any] = Body(...), store: AuthStore = Depends(get_auth_store)):
    registration = parse_registration(payload)
    outcome = store.register(registration)
    return outcome.to_dict()


@router.post("/api/auth/verify")
def verify(payload: VerifyRequest, store: AuthStore = Depends(get_auth_store)):
    outcome = store.verify_otp(payload.email, payload.code)
    return outcome.to_dict()


@router.post("/api/auth/login")
def login(payload: LoginRequest, store: AuthStore = Depends(get_auth_store)):
    identity = store.login(payload.email, payload.password)
    return {"user": identity.to_dict()}


@router.post("/api/auth/logout")
def logout(store: AuthStore = Depends(get_auth_store)):
    store.logout()
    return {"message": "Signed out"}


@router.get("/api/auth/me")
def me(store: AuthStore = Depends(get_auth_store)):
    store.reconcile()
    return store.snapshot()


@router.get("/auth/callback")
def auth_callback(code: str = "", store: AuthStore = Depends(get_auth_store)):
    """Land here from the confirmation email; finish sign-up and redirect."""
    if not code:
        return _redirect("/login")

    try:
        outcome = store.complete_from_code(code)
    except InvalidCredentials as e:
        logger.error("Session exchange error: %s", e.message)
        return _redirect("/login", "Error authenticating. Please try again.", "error")
    except JobBoardError as e:
        logger.error("Auth callback failed: %s", e.message)
        return _redirect("/login", e.message, "error")

    home = "/post-job" if outcome.identity and outcome.identity.role == EMPLOYER else "/"
    if outcome.profile_error is not None:
        return _redirect(home, outcome.profile_error.message, "warning")
    if outcome.created:
        return _redirect(home, outcome.message, "success")
    return _redirect(home)
