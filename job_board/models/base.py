"""SQLAlchemy engine and session setup."""

import os
import uuid

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


def get_database_url(url: str | None = None) -> str:
    url = url or os.environ.get("JOB_BOARD_DATABASE_URL", "sqlite:///data/job_board.db")
    # SQLAlchemy 2.x only accepts the postgresql:// scheme
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def make_engine(url: str | None = None) -> Engine:
    url = get_database_url(url)
    kwargs = {"pool_pre_ping": True, "echo": False}
    if url.startswith("sqlite"):
        # Request handlers run in a threadpool
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass
