"""Exception types shared across the console."""

from typing import Dict, Optional


class QueryServiceError(Exception):
    """Base class for errors talking to the Query Service."""


class NetworkFailure(QueryServiceError):
    """A request was rejected, returned a non-2xx status, or timed out."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class ValidationFailure(ValueError):
    """Client-side validation failed before anything was submitted."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{name}: {message}" for name, message in self.errors.items())
        super().__init__(summary or "Validation failed")


class EntryValidationError(ValidationFailure):
    """A disease entry payload is incomplete or malformed."""


class UserValidationError(ValidationFailure):
    """A user payload is incomplete or malformed."""
