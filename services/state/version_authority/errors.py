"""Typed errors raised by Version Authority operations.

Absence is never an error here: queries that find no version or no live
entity return ``[]`` or ``None``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from packages.trail_shared.errors import (
    ErrorCategory,
    ErrorDetail,
    conflict_error,
    dependency_error,
    internal_error,
    validation_error,
)

ENCODING_FAILED = "VERSION_ENCODING_FAILED"
WRITE_REJECTED = "VERSION_WRITE_REJECTED"
CONFIGURATION_MISMATCH = "VERSION_CONFIGURATION_MISMATCH"
INVALID_QUERY_OPTIONS = "VERSION_INVALID_QUERY_OPTIONS"


class VersionAuthorityError(Exception):
    """Base exception for version capture and history query failures."""

    default_code: ClassVar[str] = "VERSION_AUTHORITY_ERROR"
    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        code: str | None = None,
    ) -> None:
        """Initialize the error with a message, code and details."""
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_error_detail(self) -> ErrorDetail:
        """Return the shared structured view of this error."""
        metadata = {key: str(value) for key, value in self.details.items()}
        if self.category is ErrorCategory.VALIDATION:
            return validation_error(self.message, code=self.code, metadata=metadata)
        if self.category is ErrorCategory.CONFLICT:
            return conflict_error(self.message, code=self.code, metadata=metadata)
        if self.category is ErrorCategory.DEPENDENCY:
            return dependency_error(self.message, code=self.code, metadata=metadata)
        return internal_error(self.message, code=self.code, metadata=metadata)


class EncodingError(VersionAuthorityError):
    """Raised when prior or new entity state cannot be encoded as a diff."""

    default_code = ENCODING_FAILED
    category = ErrorCategory.VALIDATION


class WriteError(VersionAuthorityError):
    """Raised when a version cannot be persisted.

    The surrounding transaction must be rolled back; the entity mutation the
    version describes cannot commit without it.
    """

    default_code = WRITE_REJECTED
    category = ErrorCategory.DEPENDENCY

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        code: str | None = None,
        detail: ErrorDetail | None = None,
    ) -> None:
        super().__init__(message, details, code=code or (detail.code if detail else None))
        self.detail = detail

    def to_error_detail(self) -> ErrorDetail:
        """Prefer the normalized datastore detail when one was captured."""
        if self.detail is not None:
            return self.detail
        return validation_error(
            self.message,
            code=self.code,
            metadata={key: str(value) for key, value in self.details.items()},
        )

    @property
    def retryable(self) -> bool:
        """Return whether the underlying datastore failure is transient."""
        return self.detail is not None and self.detail.retryable


class ConfigurationMismatch(VersionAuthorityError):
    """Raised when identifiers or registrations disagree with configuration."""

    default_code = CONFIGURATION_MISMATCH
    category = ErrorCategory.VALIDATION


class InvalidQueryOptions(VersionAuthorityError):
    """Raised for unrecognized or malformed query options in strict mode."""

    default_code = INVALID_QUERY_OPTIONS
    category = ErrorCategory.VALIDATION
