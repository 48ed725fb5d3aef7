"""Protocol interfaces used by Version Authority."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from services.state.version_authority.domain import (
    ItemId,
    Version,
    VersionDraft,
    VersionEvent,
)


class VersionRepository(Protocol):
    """Protocol for append-only version persistence and lookup."""

    def insert_version(
        self, session: Session, draft: VersionDraft, *, scope: str | None = None
    ) -> Version:
        """Insert one version inside the caller's transaction."""

    def list_versions(
        self,
        session: Session,
        *,
        item_type: str,
        item_id: ItemId | None,
        scope: str | None = None,
        until: datetime | None = None,
    ) -> list[Version]:
        """Read one entity's versions ordered by insertion."""

    def latest_version(
        self,
        session: Session,
        *,
        item_type: str,
        item_id: ItemId | None,
        scope: str | None = None,
    ) -> Version | None:
        """Read one entity's most recent version."""

    def list_versions_by_type(
        self,
        session: Session,
        *,
        item_type: str,
        event: VersionEvent | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        scope: str | None = None,
    ) -> list[Version]:
        """Read versions of one entity type ordered by insertion."""
