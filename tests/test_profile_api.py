"""Tests for the profile request handlers."""

import pytest
from fastapi.testclient import TestClient

from job_board.backend import reset_client
from job_board.config import AppConfig
from job_board.errors import RemoteFailure
from job_board.web.app import create_app

EMPTY_SEEKER = {
    "firstName": "", "lastName": "", "email": "", "professionalHeadline": "", "bio": "",
    "phoneNumber": "", "profilePictureUrl": "", "resumeUrl": "", "websiteUrl": "",
    "linkedinUrl": "", "githubUrl": "",
}


@pytest.fixture
def config(backend):
    config = AppConfig()
    config.backend.mode = "local"
    config.backend.storage_dir = str(backend.storage_dir)
    return config


@pytest.fixture
def http(backend, config):
    with TestClient(create_app(config, client=backend)) as client:
        yield client


class TestJobSeekerProfile:
    def test_unknown_user_gets_blank_profile(self, http):
        response = http.get("/api/profile/job-seeker", params={"userId": "nobody"})
        assert response.status_code == 200
        assert response.json() == EMPTY_SEEKER

    def test_get_requires_user_id(self, http):
        response = http.get("/api/profile/job-seeker")
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}

    def test_post_requires_user_id(self, http):
        response = http.post("/api/profile/job-seeker", json={"firstName": "Ann"})
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}

    def test_post_then_get(self, http):
        response = http.post(
            "/api/profile/job-seeker",
            json={"userId": "u1", "firstName": "Ann", "lastName": "Lee", "professionalHeadline": "Engineer"},
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Profile updated successfully"}

        profile = http.get("/api/profile/job-seeker", params={"userId": "u1"}).json()
        assert profile["firstName"] == "Ann"
        assert profile["lastName"] == "Lee"
        assert profile["professionalHeadline"] == "Engineer"
        assert profile["githubUrl"] == ""

    def test_repeated_post_keeps_one_row(self, http, backend):
        payload = {"userId": "u1", "firstName": "Ann", "lastName": "Lee"}
        http.post("/api/profile/job-seeker", json=payload)
        http.post("/api/profile/job-seeker", json=payload)
        assert len(backend.select("job_seeker_profiles", {"user_id": "u1"})) == 1

    def test_falls_back_to_users_email(self, http, backend):
        backend.insert("users", [{"id": "u1", "email": "ann@example.com", "role": "job_seeker"}])
        profile = http.get("/api/profile/job-seeker", params={"userId": "u1"}).json()
        assert profile == {**EMPTY_SEEKER, "email": "ann@example.com"}

    def test_fetch_failure(self, http, backend, monkeypatch):
        def select_one(table, filters):
            raise RemoteFailure("connection reset")

        monkeypatch.setattr(backend, "select_one", select_one)
        response = http.get("/api/profile/job-seeker", params={"userId": "u1"})
        assert response.status_code == 500
        assert response.json() == {"error": "Error fetching job seeker profile"}

    def test_update_failure_passes_message(self, http, backend, monkeypatch):
        def upsert(table, row, on_conflict):
            raise RemoteFailure("new row violates row-level security policy")

        monkeypatch.setattr(backend, "upsert", upsert)
        response = http.post("/api/profile/job-seeker", json={"userId": "u1", "firstName": "Ann"})
        assert response.status_code == 500
        assert response.json() == {"error": "new row violates row-level security policy"}


class TestEmployerProfile:
    def test_unknown_user_gets_blank_profile(self, http):
        profile = http.get("/api/profile/employer", params={"userId": "nobody"}).json()
        assert set(profile) == {
            "companyName", "email", "companyWebsite", "industry",
            "companyDescription", "companyLogoUrl", "companySize",
        }
        assert all(value == "" for value in profile.values())

    def test_falls_back_to_users_company_fields(self, http, backend):
        backend.insert("users", [{
            "id": "e1", "email": "hr@acme.example", "role": "employer",
            "company_name": "Acme", "industry": "Manufacturing",
        }])
        profile = http.get("/api/profile/employer", params={"userId": "e1"}).json()
        assert profile["companyName"] == "Acme"
        assert profile["industry"] == "Manufacturing"
        assert profile["email"] == "hr@acme.example"

    def test_post_then_get(self, http):
        http.post("/api/profile/employer", json={"userId": "e1", "companyName": "Acme", "companySize": "11-50"})
        profile = http.get("/api/profile/employer", params={"userId": "e1"}).json()
        assert profile["companyName"] == "Acme"
        assert profile["companySize"] == "11-50"


class TestUploads:
    def test_resume_upload_sets_url(self, http):
        response = http.post(
            "/api/profile/job-seeker/upload",
            params={"userId": "u1", "field": "resumeUrl"},
            files={"file": ("cv.pdf", b"%PDF-1.4 test", "application/pdf")},
        )
        assert response.status_code == 200
        url = response.json()["url"]
        assert url.startswith("http://testserver/storage/v1/object/public/resumes/u1-")
        assert url.endswith(".pdf")

        profile = http.get("/api/profile/job-seeker", params={"userId": "u1"}).json()
        assert profile["resumeUrl"] == url

        served = http.get(url)
        assert served.content == b"%PDF-1.4 test"

    def test_field_must_accept_uploads(self, http):
        response = http.post(
            "/api/profile/employer/upload",
            params={"userId": "e1", "field": "companyName"},
            files={"file": ("logo.png", b"png", "image/png")},
        )
        assert response.status_code == 400

    def test_user_id_cannot_leave_storage(self, http, backend):
        response = http.post(
            "/api/profile/job-seeker/upload",
            params={"userId": "../../escaped", "field": "resumeUrl"},
            files={"file": ("cv.pdf", b"%PDF-1.4 test", "application/pdf")},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid user ID"}
        storage_root = backend.storage_dir.resolve()
        assert not list(storage_root.parent.glob("escaped-*"))
        assert not list(storage_root.glob("escaped-*"))


class TestBackendUnavailable:
    def test_profile_routes_return_503(self):
        reset_client()
        try:
            config = AppConfig()
            config.backend.url = ""
            config.backend.anon_key = ""
            with TestClient(create_app(config)) as client:
                response = client.get("/api/profile/job-seeker", params={"userId": "u1"})
                assert response.status_code == 503
                assert "not configured" in response.json()["error"]
                assert client.get("/health").json() == {"status": "ok", "backend": False}
        finally:
            reset_client()
