"""Shared fixtures: a throwaway local backend, a fake clock and a recording sleep."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from job_board.auth.schemas import parse_registration
from job_board.backend.local import LocalBackend

PASSWORD = "s3cret-pass"


class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingSleep:
    """Stands in for time.sleep; records delays and moves the clock forward."""

    def __init__(self, clock=None):
        self.delays = []
        self.clock = clock

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds=seconds)


@pytest.fixture
def backend():
    """Create a LocalBackend on a temporary SQLite file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        client = LocalBackend(
            database_url=f"sqlite:///{os.path.join(tmpdir, 'test.db')}",
            storage_dir=os.path.join(tmpdir, "storage"),
            public_base_url="http://testserver",
        )
        client.create_all()
        yield client
        client.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture
def seeker_registration():
    return parse_registration({
        "role": "job_seeker",
        "email": "ann@example.com",
        "password": PASSWORD,
        "confirmPassword": PASSWORD,
        "firstName": "Ann",
        "lastName": "Lee",
        "headline": "Backend engineer",
    })


@pytest.fixture
def employer_registration():
    return parse_registration({
        "role": "employer",
        "email": "hr@acme.example",
        "password": PASSWORD,
        "confirmPassword": PASSWORD,
        "companyName": "Acme",
        "companyWebsite": "https://acme.example",
        "industry": "Manufacturing",
    })
