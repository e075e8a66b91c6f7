"""Tests for the SQLite-backed local backend."""

import pytest

from job_board.backend import SIGNED_IN, SIGNED_OUT
from job_board.errors import AlreadyRegistered, InvalidCredentials, NotAuthenticated, NotFound, RateLimited, RemoteFailure

PASSWORD = "s3cret-pass"


def confirmed_account(backend, email="ann@example.com"):
    backend.sign_up(email, PASSWORD)
    otp = backend.outbox[-1]["otp"]
    return backend.verify_otp(email, otp)


class TestLocalAuth:
    def test_sign_up_sends_codes_without_session(self, backend):
        result = backend.sign_up("Ann@Example.com", PASSWORD)
        assert result.user.email == "ann@example.com"
        assert result.session is None
        assert backend.outbox[-1]["email"] == "ann@example.com"
        assert len(backend.outbox[-1]["otp"]) == 6

    def test_unconfirmed_account_cannot_sign_in(self, backend):
        backend.sign_up("ann@example.com", PASSWORD)
        with pytest.raises(InvalidCredentials, match="Email not confirmed"):
            backend.sign_in_with_password("ann@example.com", PASSWORD)

    def test_otp_confirms_and_opens_session(self, backend):
        result = confirmed_account(backend)
        assert result.session.access_token
        assert result.user.email_confirmed
        assert backend.get_user(result.session.access_token).id == result.user.id

    def test_otp_is_single_use(self, backend):
        backend.sign_up("ann@example.com", PASSWORD)
        otp = backend.outbox[-1]["otp"]
        backend.verify_otp("ann@example.com", otp)
        with pytest.raises(InvalidCredentials):
            backend.verify_otp("ann@example.com", otp)

    def test_link_code_exchange(self, backend):
        backend.sign_up("ann@example.com", PASSWORD)
        result = backend.exchange_code_for_session(backend.outbox[-1]["code"])
        assert result.user.email == "ann@example.com"

    def test_confirmed_email_is_already_registered(self, backend):
        confirmed_account(backend)
        with pytest.raises(AlreadyRegistered, match="User already registered"):
            backend.sign_up("ann@example.com", PASSWORD)

    def test_wrong_password(self, backend):
        confirmed_account(backend)
        with pytest.raises(InvalidCredentials, match="Invalid login credentials"):
            backend.sign_in_with_password("ann@example.com", "wrong-password")

    def test_signup_quota_reports_rate_limit(self, backend):
        backend.signup_quota = 1
        backend.sign_up("ann@example.com", PASSWORD)
        with pytest.raises(RateLimited, match="email rate limit exceeded"):
            backend.sign_up("ann@example.com", PASSWORD)

    def test_sign_out_revokes_and_notifies(self, backend):
        session = confirmed_account(backend).session
        events = []
        unsubscribe = backend.on_auth_state_change(lambda event, s: events.append((event, s.access_token)))

        backend.sign_out(session.access_token)
        unsubscribe()

        assert events == [(SIGNED_OUT, session.access_token)]
        with pytest.raises(NotAuthenticated):
            backend.get_user(session.access_token)

    def test_sign_in_notifies_listeners(self, backend):
        confirmed_account(backend)
        events = []
        backend.on_auth_state_change(lambda event, s: events.append(event))
        backend.sign_in_with_password("ann@example.com", PASSWORD)
        assert events == [SIGNED_IN]


class TestLocalTables:
    def test_select_one_not_found(self, backend):
        with pytest.raises(NotFound):
            backend.select_one("users", {"id": "missing"})

    def test_select_one_multiple(self, backend):
        backend.insert("pending_registrations", [
            {"email": "a@example.com", "role": "job_seeker"},
            {"email": "a@example.com", "role": "employer"},
        ])
        with pytest.raises(RemoteFailure, match="Multiple objects found"):
            backend.select_one("pending_registrations", {"email": "a@example.com"})

    def test_upsert_is_idempotent(self, backend):
        row = {"user_id": "u1", "first_name": "Ann", "last_name": "Lee"}
        backend.upsert("job_seeker_profiles", row, on_conflict="user_id")
        backend.upsert("job_seeker_profiles", row, on_conflict="user_id")
        rows = backend.select("job_seeker_profiles", {"user_id": "u1"})
        assert len(rows) == 1
        assert rows[0]["first_name"] == "Ann"

    def test_upsert_updates_existing(self, backend):
        backend.upsert("job_seeker_profiles", {"user_id": "u1", "first_name": "Ann"}, on_conflict="user_id")
        backend.upsert("job_seeker_profiles", {"user_id": "u1", "first_name": "Anna"}, on_conflict="user_id")
        assert backend.select_one("job_seeker_profiles", {"user_id": "u1"})["first_name"] == "Anna"

    def test_duplicate_insert_is_remote_failure(self, backend):
        backend.insert("users", [{"id": "u1", "email": "a@example.com"}])
        with pytest.raises(RemoteFailure) as exc_info:
            backend.insert("users", [{"id": "u1", "email": "a@example.com"}])
        assert exc_info.value.code == "23505"

    def test_unknown_table_and_column(self, backend):
        with pytest.raises(RemoteFailure):
            backend.select("nope")
        with pytest.raises(RemoteFailure):
            backend.select("users", {"nope": 1})

    def test_delete_returns_count(self, backend):
        backend.insert("pending_registrations", [{"email": "a@example.com", "role": "job_seeker"}])
        assert backend.delete("pending_registrations", {"email": "a@example.com"}) == 1
        assert backend.select("pending_registrations") == []

    def test_datetimes_round_trip_as_strings(self, backend):
        backend.insert("job_postings", [{
            "title": "Engineer",
            "expires_at": "2030-01-01T00:00:00+00:00",
        }])
        row = backend.select("job_postings")[0]
        assert row["expires_at"].startswith("2030-01-01T00:00:00")
        assert row["id"]


class TestLocalStorage:
    def test_upload_and_public_url(self, backend):
        backend.upload("resumes", "u1-1.pdf", b"%PDF-1.4")
        assert (backend.storage_dir / "resumes" / "u1-1.pdf").read_bytes() == b"%PDF-1.4"
        assert backend.get_public_url("resumes", "u1-1.pdf") == (
            "http://testserver/storage/v1/object/public/resumes/u1-1.pdf"
        )

    def test_upload_without_upsert_refuses_overwrite(self, backend):
        backend.upload("resumes", "u1-1.pdf", b"a")
        with pytest.raises(RemoteFailure):
            backend.upload("resumes", "u1-1.pdf", b"b", upsert=False)

    def test_upload_rejects_path_outside_bucket(self, backend):
        with pytest.raises(RemoteFailure, match="Invalid object path"):
            backend.upload("resumes", "../../escaped.pdf", b"%PDF-1.4")
        assert not (backend.storage_dir.resolve().parent / "escaped.pdf").exists()
