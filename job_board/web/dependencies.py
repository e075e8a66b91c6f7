"""Shared FastAPI dependencies: backend client and per-visitor auth state."""

from collections.abc import Generator
from typing import Optional

from fastapi import Request

from job_board.auth.store import AuthStore
from job_board.backend import BackendClient
from job_board.errors import ConfigurationMissing


def get_backend(request: Request) -> Optional[BackendClient]:
    return request.app.state.client


def require_backend(request: Request) -> BackendClient:
    """The backend client, or 503 when it is not configured."""
    client = request.app.state.client
    if client is None:
        raise ConfigurationMissing(
            "The backend is not configured. Set JOB_BOARD_BACKEND_URL and JOB_BOARD_BACKEND_ANON_KEY."
        )
    return client


def get_auth_store(request: Request) -> Generator[AuthStore, None, None]:
    """An AuthStore over the visitor's session cookie, hydrated from it.

    The backend session check runs only where a route asks for it
    (``/api/auth/me``), not on every request.
    """
    state = request.app.state
    store = AuthStore(
        state.client,
        request.session,
        config=state.config.auth,
        now=state.now,
        sleep=state.sleep,
    )
    store.start(reconcile=False)
    try:
        yield store
    finally:
        store.close()
