"""Authoritative SQL repository for version records."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select, Table, insert, select
from sqlalchemy.orm import Session

from services.state.version_authority.domain import (
    ItemId,
    Version,
    VersionDraft,
    VersionEvent,
)
from services.state.version_authority.interfaces import VersionRepository


class SqlVersionRepository(VersionRepository):
    """Insert-and-select repository over one versions table.

    Every statement runs on the caller's session so inserts share the
    caller's transaction. No statement here updates or deletes a version.
    """

    def __init__(self, table: Table) -> None:
        self._table = table

    @property
    def table(self) -> Table:
        """Return the versions table this repository writes to."""
        return self._table

    def insert_version(
        self, session: Session, draft: VersionDraft, *, scope: str | None = None
    ) -> Version:
        """Insert one version row and return the persisted record."""
        values = draft.model_dump(mode="python")
        values["event"] = draft.event.value
        result = session.execute(
            insert(self._table).values(**values),
            execution_options=_scoped(scope),
        )
        version_id = result.inserted_primary_key[0]
        return Version(id=int(version_id), **draft.model_dump())

    def list_versions(
        self,
        session: Session,
        *,
        item_type: str,
        item_id: ItemId | None,
        scope: str | None = None,
        until: datetime | None = None,
    ) -> list[Version]:
        """Read one entity's versions in insertion order."""
        stmt = self._identity_query(item_type=item_type, item_id=item_id)
        if until is not None:
            stmt = stmt.where(self._table.c.inserted_at <= until)
        stmt = stmt.order_by(self._table.c.inserted_at.asc(), self._table.c.id.asc())
        rows = session.execute(stmt, execution_options=_scoped(scope)).mappings().all()
        return [_to_version(row) for row in rows]

    def latest_version(
        self,
        session: Session,
        *,
        item_type: str,
        item_id: ItemId | None,
        scope: str | None = None,
    ) -> Version | None:
        """Read one entity's most recent version with a single-row query."""
        stmt = (
            self._identity_query(item_type=item_type, item_id=item_id)
            .order_by(self._table.c.inserted_at.desc(), self._table.c.id.desc())
            .limit(1)
        )
        row = (
            session.execute(stmt, execution_options=_scoped(scope))
            .mappings()
            .one_or_none()
        )
        return None if row is None else _to_version(row)

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
        """Read versions of one entity type in insertion order."""
        table = self._table
        stmt = select(table).where(table.c.item_type == item_type)
        if event is not None:
            stmt = stmt.where(table.c.event == event.value)
        if since is not None:
            stmt = stmt.where(table.c.inserted_at >= since)
        if until is not None:
            stmt = stmt.where(table.c.inserted_at <= until)
        stmt = stmt.order_by(table.c.inserted_at.asc(), table.c.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = session.execute(stmt, execution_options=_scoped(scope)).mappings().all()
        return [_to_version(row) for row in rows]

    def _identity_query(
        self, *, item_type: str, item_id: ItemId | None
    ) -> Select[Any]:
        table = self._table
        id_clause = (
            table.c.item_id.is_(None) if item_id is None else table.c.item_id == item_id
        )
        return select(table).where(table.c.item_type == item_type, id_clause)


def _scoped(scope: str | None) -> dict[str, Any]:
    """Return execution options routing the statement to one tenant schema."""
    if scope is None:
        return {}
    return {"schema_translate_map": {None: scope}}


def _to_version(row: Mapping[str, Any]) -> Version:
    """Map one SQL row to a strict domain version record."""
    changes = row["item_changes"]
    if not isinstance(changes, dict):
        raise ValueError("expected mapping column for item_changes")
    meta = row["meta"]
    return Version(
        id=int(row["id"]),
        event=VersionEvent(row["event"]),
        item_type=str(row["item_type"]),
        item_id=row["item_id"],
        item_changes=changes,
        originator_id=row["originator_id"],
        origin=row["origin"],
        meta=meta if isinstance(meta, dict) else None,
        inserted_at=_row_dt(row, "inserted_at"),
    )


def _row_dt(row: Mapping[str, Any], column: str) -> datetime:
    """Read and normalize one timezone-aware datetime field from SQL row."""
    value = row.get(column)
    if not isinstance(value, datetime):
        raise ValueError(f"expected datetime column for {column}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
