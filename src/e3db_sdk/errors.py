"""SDK error types."""

from __future__ import annotations


class E3DBError(RuntimeError):
    """Base SDK error."""


class ServiceUnavailableError(E3DBError):
    """Storage service could not be reached."""


class ServiceRequestError(ServiceUnavailableError):
    """Storage service returned a structured HTTP error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: object | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.body = body


class RecordDecodeError(E3DBError):
    """Service response could not be decoded into a record."""


class ConfigError(ValueError):
    """Raised when a client profile is missing or invalid."""


class ProfileExistsError(ConfigError):
    """Raised when saving over a profile that already exists."""
