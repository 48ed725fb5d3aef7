"""Authoritative in-process Python API for Version Authority."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from packages.trail_shared.config import TrailSettings
from services.state.version_authority.domain import (
    EntityRef,
    HealthStatus,
    TrackedResult,
    Version,
    VersionEvent,
)
from services.state.version_authority.identity import TypeRegistry
from services.state.version_authority.queries import OptionsInput

TEntity = TypeVar("TEntity")


class VersionAuthorityService(ABC):
    """Public API for version capture and history queries."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Session]:
        """Open one transaction that commits on success and rolls back on error."""

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
    def list_versions(
        self,
        session: Session,
        subject: object,
        item_id: object | None = None,
        options: OptionsInput = None,
    ) -> list[Version]:
        """Return one entity's versions in insertion order."""

    @abstractmethod
    def latest_version(
        self,
        session: Session,
        subject: object,
        item_id: object | None = None,
        options: OptionsInput = None,
    ) -> Version | None:
        """Return one entity's most recent version."""

    @abstractmethod
    def current_entity(self, session: Session, version: Version) -> object | None:
        """Return the live entity for a version, or ``None`` when gone."""

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
    def health(self) -> HealthStatus:
        """Return service and datastore readiness."""


def build_version_authority(
    *,
    settings: TrailSettings,
    registry: TypeRegistry,
    session_factory: sessionmaker[Session] | None = None,
    configure_logging: bool = False,
) -> VersionAuthorityService:
    """Build the default Version Authority implementation from typed settings.

    Applications that own no logging setup pass ``configure_logging=True`` to
    install the stdout handler described by ``settings.logging``.
    """
    from packages.trail_shared.logging import configure_logging_from_settings
    from services.state.version_authority.config import (
        resolve_version_authority_settings,
    )
    from services.state.version_authority.data import VersionPostgresRuntime
    from services.state.version_authority.implementation import (
        DefaultVersionAuthority,
    )

    if configure_logging:
        configure_logging_from_settings(settings.logging)

    service_settings = resolve_version_authority_settings(settings)
    if session_factory is not None:
        return DefaultVersionAuthority(
            settings=service_settings,
            registry=registry,
            session_factory=session_factory,
        )

    runtime = VersionPostgresRuntime.from_settings(settings)
    return DefaultVersionAuthority(
        settings=service_settings,
        registry=registry,
        session_factory=runtime.session_factory,
        health_probe=runtime.is_healthy,
    )

