"""SQLAlchemy-backed stand-in for the hosted platform, for development and tests.

Accounts live in ``auth_accounts`` with bcrypt password hashes; new accounts
must be confirmed with the emailed OTP or link code before password sign-in
works. "Sent" emails are logged and kept in ``outbox``.
"""

import logging
import secrets
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import bcrypt
from sqlalchemy import DateTime, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from job_board.errors import (
    AlreadyRegistered,
    InvalidCredentials,
    NotAuthenticated,
    NotFound,
    RateLimited,
    RemoteFailure,
)
from job_board.models import (
    AuthAccount,
    AuthCode,
    AuthSession as AuthSessionRow,
    Base,
    TABLE_MODELS,
    make_engine,
    make_session_factory,
)

from .base import SIGNED_IN, SIGNED_OUT, AuthResult, AuthSession, AuthUser, BackendClient

logger = logging.getLogger("job_board.backend.local")


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def _to_dict(row) -> dict:
    out = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        out[column.key] = value
    return out


class LocalBackend(BackendClient):
    """Local implementation of the backend collaborator.

    Row-level security is not simulated, so the table methods ignore ``token``.
    """

    def __init__(
        self,
        database_url: str = "sqlite:///data/job_board.db",
        storage_dir: str = "data/storage",
        public_base_url: str = "http://localhost:8000",
        signup_quota: int = 0,
    ):
        super().__init__()
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        self.engine = make_engine(database_url)
        self.SessionLocal = make_session_factory(self.engine)
        self.storage_dir = Path(storage_dir)
        self.public_base_url = public_base_url.rstrip("/")
        self.signup_quota = signup_quota
        self.outbox: list[dict] = []
        self._signup_counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        self.engine.dispose()

    # --- Auth -------------------------------------------------------------

    def _check_quota(self, email: str) -> None:
        if not self.signup_quota:
            return
        with self._lock:
            count = self._signup_counts.get(email, 0) + 1
            self._signup_counts[email] = count
        if count > self.signup_quota:
            raise RateLimited("email rate limit exceeded")

    def _issue_codes(self, db: Session, account: AuthAccount) -> None:
        otp = f"{secrets.randbelow(10 ** 6):06d}"
        link = secrets.token_urlsafe(24)
        db.add(AuthCode(account_id=account.id, kind="otp", code=otp))
        db.add(AuthCode(account_id=account.id, kind="link", code=link))
        self.outbox.append({"email": account.email, "otp": otp, "code": link})
        logger.info("Verification email queued for %s", account.email)

    def _open_session(self, db: Session, account: AuthAccount) -> AuthSession:
        token = secrets.token_hex(32)
        db.add(AuthSessionRow(access_token=token, account_id=account.id))
        account.last_sign_in_at = datetime.now(timezone.utc)
        return AuthSession(access_token=token, user=self._auth_user(account))

    @staticmethod
    def _auth_user(account: AuthAccount) -> AuthUser:
        return AuthUser(
            id=account.id,
            email=account.email,
            email_confirmed=account.email_confirmed_at is not None,
        )

    def sign_up(self, email: str, password: str, redirect_to: Optional[str] = None) -> AuthResult:
        email = email.strip().lower()
        self._check_quota(email)

        with self.SessionLocal() as db:
            account = db.execute(
                select(AuthAccount).where(AuthAccount.email == email)
            ).scalar_one_or_none()
            if account and account.email_confirmed_at is not None:
                raise AlreadyRegistered("User already registered")
            if account is None:
                account = AuthAccount(email=email, password_hash=_hash_password(password))
                db.add(account)
                db.flush()
            self._issue_codes(db, account)
            db.commit()
            return AuthResult(user=self._auth_user(account), session=None)

    def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        email = email.strip().lower()
        with self.SessionLocal() as db:
            account = db.execute(
                select(AuthAccount).where(AuthAccount.email == email)
            ).scalar_one_or_none()
            if not account or not _verify_password(password, account.password_hash):
                raise InvalidCredentials("Invalid login credentials")
            if account.email_confirmed_at is None:
                raise InvalidCredentials("Email not confirmed")
            session = self._open_session(db, account)
            db.commit()
        self._emit(SIGNED_IN, session)
        return AuthResult(user=session.user, session=session)

    def _redeem(self, kind: str, code: str, email: Optional[str] = None) -> AuthResult:
        with self.SessionLocal() as db:
            stmt = select(AuthCode).where(
                AuthCode.kind == kind, AuthCode.code == code, AuthCode.used.is_(False)
            )
            if email is not None:
                stmt = stmt.join(AuthAccount).where(AuthAccount.email == email.strip().lower())
            row = db.execute(stmt).scalars().first()
            if row is None:
                raise InvalidCredentials("Token has expired or is invalid")
            row.used = True
            account = row.account
            if account.email_confirmed_at is None:
                account.email_confirmed_at = datetime.now(timezone.utc)
            session = self._open_session(db, account)
            db.commit()
        self._emit(SIGNED_IN, session)
        return AuthResult(user=session.user, session=session)

    def verify_otp(self, email: str, token: str, type: str = "signup") -> AuthResult:
        return self._redeem("otp", token.strip(), email=email)

    def exchange_code_for_session(self, code: str) -> AuthResult:
        return self._redeem("link", code.strip())

    def get_user(self, access_token: str) -> AuthUser:
        with self.SessionLocal() as db:
            row = db.get(AuthSessionRow, access_token)
            if row is None or row.revoked:
                raise NotAuthenticated("Invalid or expired session")
            return self._auth_user(row.account)

    def sign_out(self, access_token: str) -> None:
        user = None
        with self.SessionLocal() as db:
            row = db.get(AuthSessionRow, access_token)
            if row is not None:
                row.revoked = True
                user = self._auth_user(row.account)
                db.commit()
        self._emit(SIGNED_OUT, AuthSession(access_token=access_token, user=user))

    # --- Tables -----------------------------------------------------------

    @staticmethod
    def _model(table: str):
        model = TABLE_MODELS.get(table)
        if model is None:
            raise RemoteFailure(f'relation "public.{table}" does not exist', code="42P01")
        return model

    @staticmethod
    def _column(model, name: str):
        column = model.__table__.columns.get(name)
        if column is None:
            raise RemoteFailure(
                f"Could not find the '{name}' column of '{model.__tablename__}'", code="PGRST204"
            )
        return column

    def _coerce(self, model, values: dict[str, Any]) -> dict[str, Any]:
        out = {}
        for key, value in values.items():
            column = self._column(model, key)
            if isinstance(column.type, DateTime) and isinstance(value, str):
                value = datetime.fromisoformat(value.replace("Z", "+00:00"))
            out[key] = value
        return out

    def _where(self, model, filters: Optional[dict[str, Any]]):
        stmt = select(model)
        for key, value in (filters or {}).items():
            stmt = stmt.where(self._column(model, key) == value)
        return stmt

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        token: Optional[str] = None,
    ) -> list[dict]:
        model = self._model(table)
        stmt = self._where(model, filters)
        if order_by:
            column = self._column(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit:
            stmt = stmt.limit(limit)
        try:
            with self.SessionLocal() as db:
                return [_to_dict(r) for r in db.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            raise RemoteFailure(str(e)) from e

    def select_one(self, table: str, filters: dict[str, Any], token: Optional[str] = None) -> dict:
        rows = self.select(table, filters, limit=2)
        if not rows:
            raise NotFound("The result contains 0 rows")
        if len(rows) > 1:
            raise RemoteFailure("Multiple objects found", code="PGRST116")
        return rows[0]

    def insert(self, table: str, rows: list[dict], token: Optional[str] = None) -> list[dict]:
        model = self._model(table)
        objs = [model(**self._coerce(model, r)) for r in rows]
        try:
            with self.SessionLocal() as db:
                db.add_all(objs)
                db.commit()
                return [_to_dict(o) for o in objs]
        except IntegrityError as e:
            raise RemoteFailure(
                f"duplicate key value violates unique constraint on {table}", code="23505"
            ) from e
        except SQLAlchemyError as e:
            raise RemoteFailure(str(e)) from e

    def upsert(self, table: str, row: dict, on_conflict: str, token: Optional[str] = None) -> dict:
        model = self._model(table)
        values = self._coerce(model, row)
        if on_conflict not in values:
            raise RemoteFailure(f"upsert requires a value for '{on_conflict}'")
        try:
            with self._lock, self.SessionLocal() as db:
                existing = db.execute(
                    self._where(model, {on_conflict: values[on_conflict]})
                ).scalar_one_or_none()
                if existing is None:
                    existing = model(**values)
                    db.add(existing)
                else:
                    for key, value in values.items():
                        setattr(existing, key, value)
                db.commit()
                return _to_dict(existing)
        except SQLAlchemyError as e:
            raise RemoteFailure(str(e)) from e

    def delete(self, table: str, filters: dict[str, Any], token: Optional[str] = None) -> int:
        model = self._model(table)
        try:
            with self.SessionLocal() as db:
                rows = db.execute(self._where(model, filters)).scalars().all()
                for r in rows:
                    db.delete(r)
                db.commit()
                return len(rows)
        except SQLAlchemyError as e:
            raise RemoteFailure(str(e)) from e

    # --- Storage ----------------------------------------------------------

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        root = (self.storage_dir / bucket).resolve()
        dest = (root / path).resolve()
        if not dest.is_relative_to(root):
            raise RemoteFailure(f"Invalid object path: {path}")
        if dest.exists() and not upsert:
            raise RemoteFailure("The resource already exists")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        logger.info("Stored %d bytes at %s/%s", len(data), bucket, path)
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/storage/v1/object/public/{bucket}/{path}"
