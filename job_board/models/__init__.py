"""ORM models for the job board tables."""

from .auth_account import AuthAccount, AuthCode, AuthSession
from .base import Base, get_database_url, make_engine, make_session_factory, new_id
from .job_posting import JobPosting
from .pending_registration import PendingRegistration
from .profiles import EmployerProfile, JobSeekerProfile
from .user import User

TABLE_MODELS = {
    "users": User,
    "pending_registrations": PendingRegistration,
    "job_seeker_profiles": JobSeekerProfile,
    "employer_profiles": EmployerProfile,
    "job_postings": JobPosting,
}

__all__ = [
    "Base",
    "get_database_url",
    "make_engine",
    "make_session_factory",
    "new_id",
    "AuthAccount",
    "AuthCode",
    "AuthSession",
    "User",
    "PendingRegistration",
    "JobSeekerProfile",
    "EmployerProfile",
    "JobPosting",
    "TABLE_MODELS",
]
