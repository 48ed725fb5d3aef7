"""Domain contracts for Version Authority payloads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

ItemId = int | str | UUID
"""Identifier spaces supported for ``item_id`` and ``originator_id``."""

_SCOPE_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

TEntity = TypeVar("TEntity")


class VersionEvent(str, Enum):
    """Mutation kind recorded by one version."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class EntityRef(BaseModel):
    """Stable ``(item_type, item_id)`` key identifying one tracked entity."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    item_type: str = Field(min_length=1)
    item_id: ItemId | None = None


class VersionDraft(BaseModel):
    """Version contents prior to insertion, with the clock already read."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event: VersionEvent
    item_type: str = Field(min_length=1)
    item_id: ItemId | None = None
    item_changes: dict[str, Any]
    originator_id: ItemId | None = None
    origin: str | None = Field(default=None, max_length=50)
    meta: dict[str, Any] | None = None
    inserted_at: datetime

    @field_validator("inserted_at")
    @classmethod
    def _require_aware_timestamp(cls, value: datetime) -> datetime:
        """Reject naive timestamps so stored ordering is timezone-stable."""
        if value.tzinfo is None:
            raise ValueError("inserted_at must be timezone-aware")
        return value


class Version(VersionDraft):
    """One immutable persisted version record."""

    id: int


class QueryOptions(BaseModel):
    """Options accepted by history queries.

    ``scope`` names the tenant partition (database schema) holding the
    versions table to search.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    scope: str | None = None

    @field_validator("scope")
    @classmethod
    def _validate_scope(cls, value: str | None) -> str | None:
        """Allow only plain SQL identifiers as partition names."""
        if value is None:
            return None
        if not _SCOPE_PATTERN.match(value):
            raise ValueError("scope must be a plain SQL identifier")
        return value


@dataclass(frozen=True)
class TrackedResult(Generic[TEntity]):
    """Entity mutated by a tracked operation with the version recorded for it."""

    entity: TEntity
    version: Version


class HealthStatus(BaseModel):
    """Version Authority and datastore readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    datastore_ready: bool
    detail: str
