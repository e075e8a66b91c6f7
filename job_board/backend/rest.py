"""Hosted-platform adapter speaking its auth, REST and storage HTTP endpoints."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from job_board.errors import (
    AlreadyRegistered,
    InvalidCredentials,
    NetworkError,
    NotAuthenticated,
    NotFound,
    RateLimited,
    RemoteFailure,
)
from job_board.utils.http_client import create_session

from .base import SIGNED_IN, SIGNED_OUT, AuthResult, AuthSession, AuthUser, BackendClient

logger = logging.getLogger("job_board.backend.rest")


def _message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("msg", "message", "error_description", "error"):
            if payload.get(key):
                return str(payload[key])
    return fallback


def _user(payload: Optional[dict]) -> Optional[AuthUser]:
    if not payload or not payload.get("id"):
        return None
    return AuthUser(
        id=payload["id"],
        email=payload.get("email") or "",
        email_confirmed=bool(payload.get("email_confirmed_at") or payload.get("confirmed_at")),
    )


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"eq.{value}"


class RestBackend(BackendClient):
    """Thin client over the platform's ``/auth/v1``, ``/rest/v1`` and ``/storage/v1`` APIs."""

    def __init__(self, url: str, anon_key: str, timeout: int = 30, session: Optional[requests.Session] = None):
        super().__init__()
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        # Shared by every request in the process, so no per-user token is kept here
        self.http = session or create_session(anon_key)

    def close(self) -> None:
        self.http.close()

    # --- transport --------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        data: Optional[bytes] = None,
        headers: Optional[dict] = None,
        token: Optional[str] = None,
    ) -> Any:
        merged = dict(headers or {})
        if token:
            merged["Authorization"] = f"Bearer {token}"
        try:
            response = self.http.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                data=data,
                headers=merged,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Backend request %s %s failed: %s", method, path, e)
            raise NetworkError("Network error occurred.") from e

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None

        if response.status_code >= 400:
            self._raise_for(response.status_code, payload, path)
        return payload

    @staticmethod
    def _raise_for(status: int, payload: Any, path: str) -> None:
        message = _message(payload, f"Request failed with status {status}")
        code = payload.get("code") if isinstance(payload, dict) else None
        lowered = message.lower()
        if status == 429 or "rate limit" in lowered:
            raise RateLimited(message)
        if "already registered" in lowered:
            raise AlreadyRegistered(message)
        if path.startswith("/auth/v1/token") or path.startswith("/auth/v1/verify"):
            raise InvalidCredentials(message)
        if status == 401 and path.startswith("/auth/v1/user"):
            raise NotAuthenticated(message)
        if code == "PGRST116" and "0 rows" in message:
            raise NotFound(message, code=code)
        raise RemoteFailure(message, code=str(code) if code is not None else None)

    def _auth_result(self, payload: Optional[dict]) -> AuthResult:
        payload = payload or {}
        if payload.get("access_token"):
            user = _user(payload.get("user"))
            session = AuthSession(access_token=payload["access_token"], user=user)
            self._emit(SIGNED_IN, session)
            return AuthResult(user=user, session=session)
        # Sign-up with confirmation pending returns the bare user object
        return AuthResult(user=_user(payload.get("user") or payload), session=None)

    # --- Auth -------------------------------------------------------------

    def sign_up(self, email: str, password: str, redirect_to: Optional[str] = None) -> AuthResult:
        params = {"redirect_to": redirect_to} if redirect_to else None
        payload = self._request(
            "POST", "/auth/v1/signup", params=params, json={"email": email, "password": password}
        )
        return self._auth_result(payload)

    def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        payload = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._auth_result(payload)

    def verify_otp(self, email: str, token: str, type: str = "signup") -> AuthResult:
        payload = self._request(
            "POST", "/auth/v1/verify", json={"email": email, "token": token, "type": type}
        )
        return self._auth_result(payload)

    def exchange_code_for_session(self, code: str) -> AuthResult:
        payload = self._request(
            "POST", "/auth/v1/token", params={"grant_type": "pkce"}, json={"auth_code": code}
        )
        return self._auth_result(payload)

    def get_user(self, access_token: str) -> AuthUser:
        user = _user(self._request("GET", "/auth/v1/user", token=access_token))
        if user is None:
            raise NotAuthenticated("Invalid or expired session")
        return user

    def sign_out(self, access_token: str) -> None:
        try:
            self._request("POST", "/auth/v1/logout", token=access_token)
        finally:
            self._emit(SIGNED_OUT, AuthSession(access_token=access_token, user=None))

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
        params: dict[str, Any] = {"select": "*"}
        for key, value in (filters or {}).items():
            params[key] = _eq(value)
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit:
            params["limit"] = limit
        return self._request("GET", f"/rest/v1/{table}", params=params, token=token) or []

    def select_one(self, table: str, filters: dict[str, Any], token: Optional[str] = None) -> dict:
        rows = self.select(table, filters, limit=2, token=token)
        if not rows:
            raise NotFound("The result contains 0 rows")
        if len(rows) > 1:
            raise RemoteFailure("Multiple objects found", code="PGRST116")
        return rows[0]

    def insert(self, table: str, rows: list[dict], token: Optional[str] = None) -> list[dict]:
        return self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
            token=token,
        ) or []

    def upsert(self, table: str, row: dict, on_conflict: str, token: Optional[str] = None) -> dict:
        rows = self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=[row],
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            token=token,
        ) or []
        return rows[0] if rows else dict(row)

    def delete(self, table: str, filters: dict[str, Any], token: Optional[str] = None) -> int:
        params = {key: _eq(value) for key, value in filters.items()}
        rows = self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=params,
            headers={"Prefer": "return=representation"},
            token=token,
        ) or []
        return len(rows)

    # --- Storage ----------------------------------------------------------

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "true" if upsert else "false"},
        )
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"
