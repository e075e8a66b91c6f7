"""Error taxonomy surfaced to request handlers and the UI.

Backend failures are converted into one of these before they leave a
handler; the web layer renders any of them as ``{"error": message}``.
"""

import math
from typing import Optional


class JobBoardError(Exception):
    """Base class. ``message`` is always safe to show to a user."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"error": self.message}


class ConfigurationMissing(JobBoardError):
    status_code = 503


class NotAuthenticated(JobBoardError):
    status_code = 401


class InvalidCredentials(JobBoardError):
    status_code = 401


class AlreadyRegistered(JobBoardError):
    status_code = 409


class RateLimited(JobBoardError):
    status_code = 429

    def __init__(self, message: str = "", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.retry_after is not None:
            d["retryAfter"] = math.ceil(self.retry_after)
        return d


class NotFound(JobBoardError):
    status_code = 404

    def __init__(self, message: str = "", code: str = "PGRST116"):
        super().__init__(message)
        self.code = code


class RemoteFailure(JobBoardError):
    status_code = 500

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class NetworkError(JobBoardError):
    status_code = 502


class ValidationFailure(JobBoardError):
    status_code = 422

    def __init__(self, message: str = "", field_errors: Optional[dict[str, str]] = None):
        super().__init__(message or "Please correct the highlighted fields.")
        self.field_errors = field_errors or {}

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["fields"] = dict(self.field_errors)
        return d


class RegistrationFailed(JobBoardError):
    status_code = 400


class ProfileCreationFailed(JobBoardError):
    status_code = 500


class Forbidden(JobBoardError):
    status_code = 403
