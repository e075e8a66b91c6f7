"""Tests for job listing queries, the location filter and posting creation."""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from job_board.auth.accounts import Identity
from job_board.config import ListingsConfig
from job_board.errors import Forbidden, NotAuthenticated, NotFound, ValidationFailure
from job_board.listings.location_filter import LocationFilter
from job_board.listings.service import (
    create_posting,
    fetch_posting_detail,
    fetch_postings,
    filter_by_location,
    parse_posting_form,
)

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def posting(title, location, **extra):
    row = {"title": title, "company_name": "Acme", "location": location}
    row.update(extra)
    return row


@pytest.fixture
def postings():
    return [
        {"id": "1", "title": "Backend Engineer", "location": "Berlin, Germany"},
        {"id": "2", "title": "Data Analyst", "location": "Remote"},
        {"id": "3", "title": "SRE", "location": "berlin (hybrid)"},
        {"id": "4", "title": "Designer", "location": None},
    ]


@pytest.fixture
def valid_form():
    return {
        "title": "Backend Engineer",
        "company_name": "Acme",
        "location": "Berlin",
        "description": "Build and run our job matching services.",
        "application_instructions": "Send your CV to jobs@acme.example",
        "employment_type": "Full-time",
        "experience_level": "Mid-level",
        "salary_min": "50000",
        "salary_max": "70000",
    }


class TestFetchPostings:
    def test_excludes_expired_and_orders_newest_first(self, backend):
        backend.insert("job_postings", [
            posting("Old", "Berlin", updated_at=(NOW - timedelta(days=3)).isoformat()),
            posting("Expired", "Berlin", expires_at=(NOW - timedelta(days=1)).isoformat()),
            posting("Fresh", "Remote", updated_at=(NOW - timedelta(hours=1)).isoformat(),
                    expires_at=(NOW + timedelta(days=30)).isoformat()),
        ])

        titles = [p["title"] for p in fetch_postings(backend, now=NOW)]

        assert titles == ["Fresh", "Old"]

    def test_empty_board(self, backend):
        assert fetch_postings(backend, now=NOW) == []


class TestFilterByLocation:
    def test_case_insensitive_substring(self, postings):
        assert [p["id"] for p in filter_by_location(postings, "BERLIN")] == ["1", "3"]

    def test_blank_returns_all(self, postings):
        assert filter_by_location(postings, "   ") == postings
        assert filter_by_location(postings, None) == postings


class TestLocationFilter:
    def test_applies_after_pause(self, postings):
        applied = threading.Event()
        lf = LocationFilter(postings, delay_ms=300, on_change=lambda visible: applied.set())

        lf.set_filter("berlin")
        assert len(lf.visible) == 4

        assert applied.wait(timeout=2)
        assert [p["id"] for p in lf.visible] == ["1", "3"]
        assert lf.text == "berlin"

    def test_rapid_typing_applies_last_text_once(self, postings):
        results = []
        done = threading.Event()

        def on_change(visible):
            results.append([p["id"] for p in visible])
            done.set()

        lf = LocationFilter(postings, delay_ms=300, on_change=on_change)
        for text in ("r", "re", "rem", "remote"):
            lf.set_filter(text)
            time.sleep(0.05)

        assert done.wait(timeout=2)
        time.sleep(0.4)
        assert results == [["2"]]

    def test_clear_restores_all(self, postings):
        lf = LocationFilter(postings, delay_ms=300)
        lf.set_filter("remote")
        lf.flush()
        assert [p["id"] for p in lf.visible] == ["2"]

        lf.clear()

        assert lf.visible == postings
        assert lf.text == ""

    def test_clear_cancels_pending_filter(self, postings):
        lf = LocationFilter(postings, delay_ms=50)
        lf.set_filter("remote")
        lf.clear()
        time.sleep(0.2)
        assert lf.visible == postings

    def test_from_config_uses_debounce_setting(self, postings):
        config = ListingsConfig(filter_debounce_ms=120)
        lf = LocationFilter.from_config(config, postings)
        assert lf.delay == pytest.approx(0.12)

    def test_new_postings_keep_current_filter(self, postings):
        lf = LocationFilter(postings[:2], delay_ms=300)
        lf.set_filter("berlin")
        lf.flush()
        lf.set_postings(postings)
        assert [p["id"] for p in lf.visible] == ["1", "3"]


class TestPostingDetail:
    def test_joins_employer_company(self, backend):
        backend.upsert("employer_profiles", {"user_id": "emp1", "company_name": "Acme GmbH"}, on_conflict="user_id")
        created = backend.insert("job_postings", [posting("Engineer", "Berlin", employer_user_id="emp1")])[0]

        detail = fetch_posting_detail(backend, created["id"])

        assert detail["title"] == "Engineer"
        assert detail["employer_company_name"] == "Acme GmbH"

    def test_not_found_message(self, backend):
        with pytest.raises(NotFound, match="Job with ID nope not found."):
            fetch_posting_detail(backend, "nope")


class TestCreatePosting:
    def test_employer_can_post(self, backend, valid_form):
        employer = Identity(id="emp1", email="hr@acme.example", role="employer")
        created = create_posting(backend, employer, parse_posting_form(valid_form))

        assert created["employer_user_id"] == "emp1"
        assert created["salary_min"] == 50000
        assert created["salary_currency"] == "USD"
        assert [p["id"] for p in fetch_postings(backend)] == [created["id"]]

    def test_job_seeker_cannot_post(self, backend, valid_form):
        seeker = Identity(id="u1", email="ann@example.com", role="job_seeker")
        with pytest.raises(Forbidden):
            create_posting(backend, seeker, parse_posting_form(valid_form))

    def test_anonymous_cannot_post(self, backend, valid_form):
        with pytest.raises(NotAuthenticated):
            create_posting(backend, None, parse_posting_form(valid_form))

    def test_posts_as_the_employer(self, backend, monkeypatch, valid_form):
        employer = Identity(id="emp1", email="hr@acme.example", role="employer")
        seen = []
        insert = backend.insert

        def recording_insert(table, rows, token=None):
            seen.append(token)
            return insert(table, rows, token=token)

        monkeypatch.setattr(backend, "insert", recording_insert)
        create_posting(backend, employer, parse_posting_form(valid_form), token="employer-token")
        assert seen == ["employer-token"]

    def test_salary_range_checked(self, valid_form):
        valid_form["salary_max"] = "1000"
        with pytest.raises(ValidationFailure) as exc_info:
            parse_posting_form(valid_form)
        assert exc_info.value.field_errors["salary_max"].startswith("Maximum salary")

    def test_short_fields_rejected(self, valid_form):
        valid_form["title"] = "A"
        valid_form["description"] = "short"
        with pytest.raises(ValidationFailure) as exc_info:
            parse_posting_form(valid_form)
        errors = exc_info.value.field_errors
        assert errors["title"] == "Job title must be at least 2 characters."
        assert errors["description"] == "Description must be at least 10 characters."

    def test_blank_salary_is_optional(self, valid_form):
        valid_form["salary_min"] = ""
        valid_form["salary_max"] = ""
        form = parse_posting_form(valid_form)
        assert form.salary_min is None and form.salary_max is None
