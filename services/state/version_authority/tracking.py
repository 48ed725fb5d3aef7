"""Tracked mutations: apply an entity change and record its version together."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from services.state.version_authority.config import VersionAuthoritySettings
from services.state.version_authority.domain import TrackedResult, VersionEvent
from services.state.version_authority.encoder import encode
from services.state.version_authority.errors import EncodingError
from services.state.version_authority.identity import (
    IdentityResolver,
    entity_state,
    mapped_field_names,
    primary_key_field_names,
    primary_key_value,
)
from services.state.version_authority.writer import VersionWriter

TEntity = TypeVar("TEntity")


class VersionTracker:
    """Run entity inserts, updates and deletes with their version writes.

    Every method works inside the caller's session and flushes the entity
    before writing the version, so both rows land in the same transaction and
    autogenerated ids are known when the version is built. Nothing is
    committed here.
    """

    def __init__(
        self,
        *,
        resolver: IdentityResolver,
        writer: VersionWriter,
        settings: VersionAuthoritySettings,
    ) -> None:
        self._resolver = resolver
        self._writer = writer
        self._settings = settings

    def insert(
        self,
        session: Session,
        entity: TEntity,
        *,
        originator: object | None = None,
        origin: str | None = None,
        meta: Mapping[str, Any] | None = None,
        scope: str | None = None,
    ) -> TrackedResult[TEntity]:
        """Insert one entity and record a ``created`` version."""
        self._resolver.registry.item_type_for(type(entity))
        session.add(entity)
        session.flush()

        item_changes = encode(VersionEvent.CREATED, None, entity_state(entity))
        version = self._writer.write(
            session,
            self._resolver.resolve(entity),
            VersionEvent.CREATED,
            item_changes,
            originator_id=originator_id_of(originator),
            origin=origin,
            meta=meta,
            scope=scope,
        )
        return TrackedResult(entity=entity, version=version)

    def update(
        self,
        session: Session,
        entity: TEntity,
        changes: Mapping[str, Any],
        *,
        originator: object | None = None,
        origin: str | None = None,
        meta: Mapping[str, Any] | None = None,
        scope: str | None = None,
    ) -> TrackedResult[TEntity]:
        """Apply ``changes`` to one entity and record an ``updated`` version.

        Primary keys are immutable here; changing one would file the version
        under a different entity.
        """
        ref = self._resolver.resolve(entity)
        known = mapped_field_names(entity)
        unknown = sorted(str(key) for key in changes if key not in known)
        if unknown:
            raise EncodingError(
                "changes name unmapped fields",
                {"item_type": ref.item_type, "fields": ", ".join(unknown)},
            )
        primary_keys = primary_key_field_names(entity)
        keys = sorted(str(key) for key in changes if key in primary_keys)
        if keys:
            raise EncodingError(
                "changes name primary-key fields",
                {"item_type": ref.item_type, "fields": ", ".join(keys)},
            )

        prior_state = entity_state(entity)
        for field, value in changes.items():
            setattr(entity, field, value)
        session.flush()

        item_changes = encode(VersionEvent.UPDATED, prior_state, entity_state(entity))
        version = self._writer.write(
            session,
            self._resolver.resolve(entity),
            VersionEvent.UPDATED,
            item_changes,
            originator_id=originator_id_of(originator),
            origin=origin,
            meta=meta,
            scope=scope,
        )
        return TrackedResult(entity=entity, version=version)

    def delete(
        self,
        session: Session,
        entity: TEntity,
        *,
        originator: object | None = None,
        origin: str | None = None,
        meta: Mapping[str, Any] | None = None,
        scope: str | None = None,
    ) -> TrackedResult[TEntity]:
        """Delete one entity and record a ``deleted`` version."""
        ref = self._resolver.resolve(entity)
        prior_state = entity_state(entity)
        session.delete(entity)
        session.flush()

        item_changes = encode(
            VersionEvent.DELETED,
            prior_state,
            None,
            deleted_changes=self._settings.deleted_changes,
        )
        version = self._writer.write(
            session,
            ref,
            VersionEvent.DELETED,
            item_changes,
            originator_id=originator_id_of(originator),
            origin=origin,
            meta=meta,
            scope=scope,
        )
        return TrackedResult(entity=entity, version=version)


def originator_id_of(originator: object | None) -> object | None:
    """Return a raw originator id, reading the primary key of mapped entities."""
    if originator is None:
        return None
    if sa_inspect(originator, raiseerr=False) is not None and not isinstance(
        originator, type
    ):
        return primary_key_value(originator)
    return originator
