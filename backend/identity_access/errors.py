"""
Error taxonomy shared by access control and resource operations.

Why:
    Services raise typed errors; the web layer maps them to the uniform JSON
    envelope `{ok: false, error}` with the matching HTTP status in a single
    exception handler. Keeping the mapping on the exception class avoids
    status drift between routes.
"""
from __future__ import annotations


class OsceError(Exception):
    """Base class for errors that surface as an error envelope."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(OsceError):
    """Missing or malformed required fields."""

    status_code = 400


class Unauthenticated(OsceError):
    """No session cookie, or the auth provider rejected it."""

    status_code = 401


class Forbidden(OsceError):
    """Role or scope check failed, or the target profile is immutable."""

    status_code = 403


class NotFound(OsceError):
    """Referenced entity is absent."""

    status_code = 404


class Conflict(OsceError):
    """Uniqueness rule violated (duplicate grader)."""

    status_code = 409


class PayloadTooLarge(OsceError):
    status_code = 413


class UnsupportedMediaType(OsceError):
    status_code = 415


class Dependency(OsceError):
    """The hosted store or auth provider failed unexpectedly."""

    status_code = 500


class ProviderRejected(InvalidInput):
    """The auth provider refused an admin call (ban, reset, delete, create)."""


__all__ = [
    "OsceError",
    "InvalidInput",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "Conflict",
    "PayloadTooLarge",
    "UnsupportedMediaType",
    "Dependency",
    "ProviderRejected",
]
