"""FastAPI application factory."""

import logging
import time
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from job_board.auth.schemas import field_errors
from job_board.backend import BackendClient, get_client
from job_board.config import AppConfig, load_config
from job_board.errors import JobBoardError, ValidationFailure
from job_board.utils.dates import utcnow

from .auth import router as auth_router
from .jobs import router as jobs_router
from .profile_api import router as profile_router

logger = logging.getLogger("job_board.web")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(JobBoardError)
    async def job_board_error(request: Request, exc: JobBoardError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body = exc.to_dict()
        headers = {"Retry-After": str(body["retryAfter"])} if "retryAfter" in body else None
        return JSONResponse(body, status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        failure = ValidationFailure(field_errors=field_errors(exc))
        return JSONResponse(failure.to_dict(), status_code=failure.status_code)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "An unexpected error occurred."}, status_code=500)


def create_app(config: Optional[AppConfig] = None, client: Optional[BackendClient] = None) -> FastAPI:
    config = config or load_config(required=False)
    app = FastAPI(title="Job Board")

    app.state.config = config
    app.state.client = client if client is not None else get_client(config)
    app.state.now = utcnow
    app.state.sleep = time.sleep
    if app.state.client is None:
        logger.warning("Backend client unavailable; auth, profile and job routes will return 503")

    # Session middleware carries the visitor's cached identity and cooldown
    app.add_middleware(SessionMiddleware, secret_key=config.web.session_secret)
    if config.web.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.web.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Local backend serves its uploaded objects at the hosted platform's public path
    if config.backend.mode == "local":
        storage_dir = Path(config.backend.storage_dir)
        storage_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/storage/v1/object/public", StaticFiles(directory=str(storage_dir)), name="storage")

    _register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(jobs_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "backend": app.state.client is not None}

    return app
