"""Concrete Version Authority implementation."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import MetaData, Table, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from packages.trail_shared.logging import get_logger
from resources.substrates.postgres import transactional_session
from services.state.version_authority.config import VersionAuthoritySettings
from services.state.version_authority.data import (
    SqlVersionRepository,
    build_versions_table,
    verify_versions_table,
)
from services.state.version_authority.domain import (
    EntityRef,
    HealthStatus,
    TrackedResult,
    Version,
    VersionEvent,
)
from services.state.version_authority.identity import IdentityResolver, TypeRegistry
from services.state.version_authority.interfaces import VersionRepository
from services.state.version_authority.queries import HistoryQueryEngine, OptionsInput
from services.state.version_authority.service import VersionAuthorityService
from services.state.version_authority.tracking import VersionTracker
from services.state.version_authority.writer import VersionWriter

_LOGGER = get_logger(__name__)

TEntity = TypeVar("TEntity")


class DefaultVersionAuthority(VersionAuthorityService):
    """Default Version Authority wired over a SQLAlchemy session factory.

    Settings and the type registry are passed in, never read from module
    state, so differently configured authorities can share one process.
    """

    def __init__(
        self,
        *,
        settings: VersionAuthoritySettings,
        registry: TypeRegistry,
        session_factory: sessionmaker[Session],
        repository: VersionRepository | None = None,
        metadata: MetaData | None = None,
        now_provider: Callable[[], datetime] | None = None,
        health_probe: Callable[[], bool] | None = None,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._table = build_versions_table(settings, metadata)
        self._repository = repository or SqlVersionRepository(self._table)
        self._resolver = IdentityResolver(registry=registry)
        self._writer = VersionWriter(
            repository=self._repository,
            settings=settings,
            now_provider=now_provider,
        )
        self._queries = HistoryQueryEngine(
            repository=self._repository,
            resolver=self._resolver,
            settings=settings,
        )
        self._tracker = VersionTracker(
            resolver=self._resolver,
            writer=self._writer,
            settings=settings,
        )
        self._health_probe = health_probe

    @property
    def table(self) -> Table:
        """Return the versions table definition for this configuration."""
        return self._table

    def verify_configuration(
        self, bind: Engine | Connection, *, scope: str | None = None
    ) -> None:
        """Check the stored versions table against identifier settings."""
        verify_versions_table(bind, self._settings, scope=scope)
        _LOGGER.info("Versions table matches identifier configuration")

    def transaction(self) -> AbstractContextManager[Session]:
        """Open one commit-or-rollback transaction scope."""
        return transactional_session(self._session_factory)

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
        """Insert one entity and record its ``created`` version."""
        return self._tracker.insert(
            session, entity, originator=originator, origin=origin, meta=meta, scope=scope
        )

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
        """Update one entity and record its ``updated`` version."""
        return self._tracker.update(
            session,
            entity,
            changes,
            originator=originator,
            origin=origin,
            meta=meta,
            scope=scope,
        )

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
        """Delete one entity and record its ``deleted`` version."""
        return self._tracker.delete(
            session, entity, originator=originator, origin=origin, meta=meta, scope=scope
        )

    def write_version(
        self,
        session: Session,
        entity_ref: EntityRef,
        event: VersionEvent | str,
        item_changes: Mapping[str, Any],
        *,
        originator_id: object | None = None,
        origin: str | None = None,
        meta: Mapping[str, Any] | None = None,
        scope: str | None = None,
    ) -> Version:
        """Record one version for a mutation the caller applied itself."""
        return self._writer.write(
            session,
            entity_ref,
            event,
            item_changes,
            originator_id=originator_id,
            origin=origin,
            meta=meta,
            scope=scope,
        )

    def list_versions(
        self,
        session: Session,
        subject: object,
        item_id: object | None = None,
        options: OptionsInput = None,
    ) -> list[Version]:
        """Return one entity's versions in insertion order."""
        return self._queries.list_versions(session, subject, item_id, options)

    def latest_version(
        self,
        session: Session,
        subject: object,
        item_id: object | None = None,
        options: OptionsInput = None,
    ) -> Version | None:
        """Return one entity's most recent version."""
        return self._queries.latest_version(session, subject, item_id, options)

    def current_entity(self, session: Session, version: Version) -> object | None:
        """Return the live entity for a version, or ``None`` when gone."""
        return self._queries.current_entity(session, version)

    def snapshot_at(
        self,
        session: Session,
        subject: object,
        item_id: object | None = None,
        *,
        at: datetime,
        options: OptionsInput = None,
    ) -> dict[str, Any] | None:
        """Reconstruct one entity's recorded state at a point in time."""
        return self._queries.snapshot_at(
            session, subject, item_id, at=at, options=options
        )

    def list_versions_by_type(
        self,
        session: Session,
        subject: str | type,
        *,
        event: VersionEvent | str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        options: OptionsInput = None,
    ) -> list[Version]:
        """Return versions across one entity type in insertion order."""
        return self._queries.list_versions_by_type(
            session,
            subject,
            event=event,
            since=since,
            until=until,
            limit=limit,
            options=options,
        )

    def health(self) -> HealthStatus:
        """Return readiness based on a trivial datastore round trip."""
        if self._health_probe is not None:
            ready = self._health_probe()
        else:
            ready = self._probe_session()
        return HealthStatus(
            service_ready=True,
            datastore_ready=ready,
            detail="ok" if ready else "datastore ping failed",
        )

    def _probe_session(self) -> bool:
        try:
            with self._session_factory() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            _LOGGER.warning("Datastore health probe failed: %s", type(exc).__name__)
            return False
        return True
