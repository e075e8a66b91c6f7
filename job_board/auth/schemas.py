"""Request payloads validated at the boundary.

Registration is a tagged union on ``role``; field names are accepted either
in snake_case or in the camelCase the forms post.
"""

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from job_board.errors import ValidationFailure

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


class _FormModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _check_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError("Please enter a valid email address")
    return value


class _RegistrationBase(_FormModel):
    email: str
    password: str
    confirm_password: str

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self

    def pending_fields(self) -> dict:
        """Role and profile fields to stage until the email is verified."""
        return self.model_dump(exclude={"password", "confirm_password"})


class JobSeekerRegistration(_RegistrationBase):
    role: Literal["job_seeker"] = "job_seeker"
    first_name: str
    last_name: str
    headline: str = ""
    bio: str = ""

    @field_validator("first_name", "last_name")
    @classmethod
    def _required(cls, v: str, info) -> str:
        if not v:
            label = "First name" if info.field_name == "first_name" else "Last name"
            raise ValueError(f"{label} is required")
        return v


class EmployerRegistration(_RegistrationBase):
    role: Literal["employer"] = "employer"
    company_name: str
    company_website: str = ""
    company_description: str = ""
    industry: str = ""

    @field_validator("company_website")
    @classmethod
    def _validate_website(cls, v: str) -> str:
        if v and not URL_RE.match(v):
            raise ValueError("Please enter a valid URL")
        return v

    @field_validator("company_name")
    @classmethod
    def _company_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Company name is required")
        return v


Registration = Annotated[
    Union[JobSeekerRegistration, EmployerRegistration],
    Field(discriminator="role"),
]

_registration_adapter = TypeAdapter(Registration)


class LoginRequest(_FormModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)


class VerifyRequest(_FormModel):
    email: str
    code: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)


def field_errors(exc) -> dict[str, str]:
    """Flatten pydantic (or FastAPI request) errors into ``{field: message}``, first message per field."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "job_seeker", "employer")]
        name = loc[-1] if loc else "form"
        message = err.get("msg", "Invalid value")
        # "Value error, Passwords don't match" -> "Passwords don't match"
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        if name == "form" and "Passwords" in message:
            name = "confirmPassword"
        errors.setdefault(name, message)
    return errors


def parse_registration(data: dict) -> Union[JobSeekerRegistration, EmployerRegistration]:
    try:
        return _registration_adapter.validate_python(data)
    except ValidationError as e:
        raise ValidationFailure(field_errors=field_errors(e)) from e
