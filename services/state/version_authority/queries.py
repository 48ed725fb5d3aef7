"""History query engine over the versions table."""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import AbstractContextManager
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from packages.trail_shared.logging import (
    fields,
    get_logger,
    log_context,
    operation_context,
)
from services.state.version_authority.config import VersionAuthoritySettings
from services.state.version_authority.domain import (
    EntityRef,
    QueryOptions,
    Version,
    VersionEvent,
)
from services.state.version_authority.errors import InvalidQueryOptions
from services.state.version_authority.identity import IdentifierPolicy, IdentityResolver
from services.state.version_authority.interfaces import VersionRepository

_LOGGER = get_logger(__name__)

Subject = str | type | object
"""An ``item_type`` tag, a registered model class, or a tracked entity."""

OptionsInput = QueryOptions | Mapping[str, Any] | None


class HistoryQueryEngine:
    """Answer per-entity and per-type history questions.

    Subjects may be given as an ``item_type`` string plus ``item_id``, a
    registered model class plus ``item_id``, or a tracked entity instance on
    its own. Identifiers go through the same ``IdentifierPolicy`` used when
    versions are written.
    """

    def __init__(
        self,
        *,
        repository: VersionRepository,
        resolver: IdentityResolver,
        settings: VersionAuthoritySettings,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._settings = settings
        self._item_ids = IdentifierPolicy.for_items(settings)

    def list_versions(
        self,
        session: Session,
        subject: Subject,
        item_id: object | None = None,
        options: OptionsInput = None,
    ) -> list[Version]:
        """Return every version of one entity in insertion order."""
        ref = self._ref(subject, item_id)
        resolved = self.parse_options(options)
        with _query_context("list_versions", ref, resolved):
            versions = self._repository.list_versions(
                session,
                item_type=ref.item_type,
                item_id=ref.item_id,
                scope=resolved.scope,
            )
            with log_context({fields.RESULT_COUNT: len(versions)}):
                _LOGGER.debug("Version history read")
        return versions

    def latest_version(
        self,
        session: Session,
        subject: Subject,
        item_id: object | None = None,
        options: OptionsInput = None,
    ) -> Version | None:
        """Return the most recent version of one entity, or ``None``."""
        ref = self._ref(subject, item_id)
        resolved = self.parse_options(options)
        with _query_context("latest_version", ref, resolved):
            return self._repository.latest_version(
                session,
                item_type=ref.item_type,
                item_id=ref.item_id,
                scope=resolved.scope,
            )

    def current_entity(self, session: Session, version: Version) -> object | None:
        """Return the live entity a version refers to, or ``None`` if gone."""
        return self._resolver.dereference(session, version, policy=self._item_ids)

    def snapshot_at(
        self,
        session: Session,
        subject: Subject,
        item_id: object | None = None,
        *,
        at: datetime,
        options: OptionsInput = None,
    ) -> dict[str, Any] | None:
        """Reconstruct an entity's recorded fields as of ``at``.

        Returns ``None`` when the entity was not alive at that point.
        """
        ref = self._ref(subject, item_id)
        resolved = self.parse_options(options)
        with _query_context("snapshot_at", ref, resolved):
            versions = self._repository.list_versions(
                session,
                item_type=ref.item_type,
                item_id=ref.item_id,
                scope=resolved.scope,
                until=_utc(at),
            )
        return fold_versions(versions)

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
        """Return versions across all entities of one type in insertion order."""
        if limit is not None and limit <= 0:
            raise ValueError("limit must be > 0")
        item_type = self._resolver.item_type_for(subject)
        resolved = self.parse_options(options)
        return self._repository.list_versions_by_type(
            session,
            item_type=item_type,
            event=None if event is None else VersionEvent(event),
            since=None if since is None else _utc(since),
            until=None if until is None else _utc(until),
            limit=limit,
            scope=resolved.scope,
        )

    def parse_options(self, options: OptionsInput) -> QueryOptions:
        """Validate query options, rejecting or dropping unknown keys.

        Unknown keys raise ``InvalidQueryOptions`` when
        ``reject_unknown_options`` is set; otherwise they are dropped and a
        warning is logged.
        """
        if options is None:
            return QueryOptions()
        if isinstance(options, QueryOptions):
            return options
        if not isinstance(options, Mapping):
            raise InvalidQueryOptions(
                "query options must be a mapping",
                {"options_type": type(options).__name__},
            )

        payload = dict(options)
        unknown = sorted(str(key) for key in payload if key not in QueryOptions.model_fields)
        if unknown and not self._settings.reject_unknown_options:
            _LOGGER.warning("Ignoring unknown query options: %s", ", ".join(unknown))
            payload = {key: value for key, value in payload.items() if key not in unknown}

        try:
            return QueryOptions.model_validate(payload)
        except ValidationError as exc:
            raise InvalidQueryOptions(
                "invalid query options",
                {"unknown": ", ".join(unknown), "error": str(exc)},
            ) from exc

    def _ref(self, subject: Subject, item_id: object | None) -> EntityRef:
        """Resolve a query subject to a normalized ``EntityRef``."""
        if isinstance(subject, (str, type)):
            item_type = self._resolver.item_type_for(subject)
            raw_id = item_id
        else:
            if item_id is not None:
                raise TypeError("item_id is not accepted with an entity instance")
            ref = self._resolver.resolve(subject)
            item_type, raw_id = ref.item_type, ref.item_id
        return EntityRef(item_type=item_type, item_id=self._item_ids.normalize(raw_id))


def fold_versions(versions: list[Version]) -> dict[str, Any] | None:
    """Replay versions in order into the last recorded field state."""
    state: dict[str, Any] | None = None
    for version in versions:
        if version.event is VersionEvent.CREATED:
            state = dict(version.item_changes)
        elif version.event is VersionEvent.UPDATED:
            state = {**(state or {}), **version.item_changes}
        else:
            state = None
    return state


def _query_context(
    operation: str, ref: EntityRef, options: QueryOptions
) -> AbstractContextManager[None]:
    return operation_context(
        operation, item_type=ref.item_type, item_id=ref.item_id, scope=options.scope
    )


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
