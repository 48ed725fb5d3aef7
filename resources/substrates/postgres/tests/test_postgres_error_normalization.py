"""Tests for datastore exception normalization into the shared error taxonomy."""

from __future__ import annotations

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
)

from packages.trail_shared.errors import codes
from resources.substrates.postgres.errors import normalize_datastore_error


class UniqueViolation(Exception):
    """Synthetic driver unique-violation exception."""


def test_normalize_integrity_error_maps_to_conflict() -> None:
    """Constraint failures should map to conflict/already-exists semantics."""
    error = normalize_datastore_error(
        IntegrityError("INSERT", {}, UniqueViolation("duplicate key value"))
    )

    assert error.category.value == "conflict"
    assert error.code == codes.ALREADY_EXISTS
    assert error.retryable is False
    assert error.metadata == {
        "exception_type": "IntegrityError",
        "driver_exception_type": "UniqueViolation",
    }


def test_normalize_operational_errors_map_to_retryable_dependency() -> None:
    """Operational failures should be retryable dependency errors."""
    error = normalize_datastore_error(
        OperationalError("SELECT 1", {}, Exception("server closed the connection"))
    )

    assert error.category.value == "dependency"
    assert error.code == codes.DEPENDENCY_UNAVAILABLE
    assert error.retryable is True


def test_normalize_timeouts_map_to_retryable_dependency() -> None:
    """Timeouts surfaced through other exception types are still transient."""
    error = normalize_datastore_error(TimeoutError("statement timeout"))

    assert error.category.value == "dependency"
    assert error.retryable is True


def test_normalize_programming_errors_map_to_non_retryable_dependency() -> None:
    """Interface/programming failures should be non-retryable dependency errors."""
    for exc in (
        ProgrammingError("SELEC 1", {}, Exception("syntax error")),
        InterfaceError("SELECT 1", {}, Exception("cursor already closed")),
    ):
        error = normalize_datastore_error(exc)
        assert error.category.value == "dependency"
        assert error.code == codes.DEPENDENCY_FAILURE
        assert error.retryable is False


def test_normalize_unknown_exception_maps_to_internal() -> None:
    """Unexpected failures should map to internal/unexpected semantics."""
    error = normalize_datastore_error(RuntimeError("boom"))

    assert error.category.value == "internal"
    assert error.code == codes.UNEXPECTED_EXCEPTION
