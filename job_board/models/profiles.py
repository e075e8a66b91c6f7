"""Role-specific profile rows, one per identity, written by upsert on user_id."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class JobSeekerProfile(Base):
    __tablename__ = "job_seeker_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(String(255), default="")
    last_name: Mapped[str] = mapped_column(String(255), default="")
    email: Mapped[str] = mapped_column(String(255), default="")
    headline: Mapped[str] = mapped_column(String(255), default="")
    bio: Mapped[str] = mapped_column(Text, default="")
    phone_number: Mapped[str] = mapped_column(String(50), default="")
    location: Mapped[str] = mapped_column(String(255), default="")
    profile_picture_url: Mapped[str] = mapped_column(String(2048), default="")
    resume_url: Mapped[str] = mapped_column(String(2048), default="")
    website_url: Mapped[str] = mapped_column(String(2048), default="")
    linkedin_url: Mapped[str] = mapped_column(String(2048), default="")
    github_url: Mapped[str] = mapped_column(String(2048), default="")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class EmployerProfile(Base):
    __tablename__ = "employer_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)

    company_name: Mapped[str] = mapped_column(String(255), default="")
    email: Mapped[str] = mapped_column(String(255), default="")
    company_website: Mapped[str] = mapped_column(String(512), default="")
    industry: Mapped[str] = mapped_column(String(255), default="")
    company_description: Mapped[str] = mapped_column(Text, default="")
    company_logo_url: Mapped[str] = mapped_column(String(2048), default="")
    company_size: Mapped[str] = mapped_column(String(50), default="")
    contact_first_name: Mapped[str] = mapped_column(String(255), default="")
    contact_last_name: Mapped[str] = mapped_column(String(255), default="")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
