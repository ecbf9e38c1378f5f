"""
Application-level exception types.

Every error that reaches the HTTP boundary is an `AppError` subclass carrying
a stable machine-readable `code` and the status it maps to.
"""

from __future__ import annotations


class AppError(Exception):
    """Base exception for all application errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, *, detail: str | None = None, code: str | None = None) -> None:
        self.detail = detail or message
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when request input is malformed or missing."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidFileTypeError(ValidationError):
    """Raised when an upload's MIME type is outside the allow-list."""

    code = "INVALID_FILE_TYPE"


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the size ceiling."""

    code = "FILE_TOO_LARGE"
    status_code = 413


class AuthenticationError(AppError):
    """Raised when the bearer token is missing or cannot be verified."""

    code = "UNAUTHORIZED"
    status_code = 401


class PermissionDeniedError(AppError):
    """Raised when the caller can see a resource but lacks the required level."""

    code = "PERMISSION_DENIED"
    status_code = 403


class NotFoundError(AppError):
    """Raised when an entity is absent or not visible to the caller."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: object = None) -> None:
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            detail=f"{entity_type} not found",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConfigurationError(AppError):
    """Raised when required configuration is missing or invalid."""

    code = "CONFIG_ERROR"
    status_code = 500


class StorageError(AppError):
    """Raised when the object store rejects or fails a request."""

    code = "STORAGE_ERROR"
    status_code = 502
