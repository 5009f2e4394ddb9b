from __future__ import annotations


class DomainError(Exception):
    """Base for auth domain errors."""


class ValidationError(DomainError):
    """Malformed or incomplete request."""

    def __init__(self, message: str, *, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}


class AuthenticationError(DomainError):
    """Credential could not be accepted. Never tells the client which check failed."""


class InvalidIdentityAssertion(AuthenticationError):
    """Apple identity token failed verification."""


class ExternalProviderError(DomainError):
    """Upstream identity provider call failed."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class InternalError(DomainError):
    """Storage or unexpected failure."""


class DuplicateRecordError(DomainError):
    """A write hit a uniqueness constraint."""
