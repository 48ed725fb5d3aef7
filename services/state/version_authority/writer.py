"""Version writer: persists one version inside the caller's transaction."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from packages.trail_shared.errors import codes
from packages.trail_shared.logging import (
    fields,
    get_logger,
    log_context,
    operation_context,
)
from resources.substrates.postgres.errors import normalize_datastore_error
from services.state.version_authority.config import VersionAuthoritySettings
from services.state.version_authority.domain import (
    EntityRef,
    Version,
    VersionDraft,
    VersionEvent,
)
from services.state.version_authority.encoder import normalize_state
from services.state.version_authority.errors import EncodingError, WriteError
from services.state.version_authority.identity import IdentifierPolicy
from services.state.version_authority.interfaces import VersionRepository

_LOGGER = get_logger(__name__)


class VersionWriter:
    """Build immutable version records and insert them through the repository."""

    def __init__(
        self,
        *,
        repository: VersionRepository,
        settings: VersionAuthoritySettings,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._item_ids = IdentifierPolicy.for_items(settings)
        self._originator_ids = IdentifierPolicy.for_originators(settings)
        self._now_provider = now_provider or (lambda: datetime.now(UTC))

    @property
    def item_id_policy(self) -> IdentifierPolicy:
        """Return the identifier policy applied to ``item_id`` on write."""
        return self._item_ids

    def write(
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
        """Insert one version in the session's active transaction.

        Raises ``WriteError`` when the version is malformed or the datastore
        rejects it. The caller must roll back its transaction in that case.
        """
        draft = self._draft(
            entity_ref,
            event,
            item_changes,
            originator_id=originator_id,
            origin=origin,
            meta=meta,
        )

        with operation_context(
            "write_version",
            item_type=draft.item_type,
            item_id=draft.item_id,
            scope=scope,
            event=draft.event.value,
            origin=draft.origin,
        ):
            try:
                version = self._repository.insert_version(session, draft, scope=scope)
            except SQLAlchemyError as exc:
                detail = normalize_datastore_error(exc)
                with log_context({fields.ERROR_CODE: detail.code}):
                    _LOGGER.error("Version write rejected by datastore")
                raise WriteError(
                    "datastore rejected version insert",
                    {"item_type": draft.item_type, "event": draft.event.value},
                    detail=detail,
                ) from exc

            with log_context({fields.VERSION_ID: version.id}):
                _LOGGER.info("Version written")
        return version

    def _draft(
        self,
        entity_ref: EntityRef,
        event: VersionEvent | str,
        item_changes: Mapping[str, Any],
        *,
        originator_id: object | None,
        origin: str | None,
        meta: Mapping[str, Any] | None,
    ) -> VersionDraft:
        """Validate inputs and read the clock once for ``inserted_at``.

        ``item_changes`` and ``meta`` are normalized to JSON-compatible form
        here, so the returned version matches the stored row.
        """
        if not isinstance(item_changes, Mapping):
            raise _invalid("item_changes must be a mapping")
        if meta is not None and not isinstance(meta, Mapping):
            raise _invalid("meta must be a mapping")

        inserted_at = self._now_provider()
        if inserted_at.tzinfo is None:
            inserted_at = inserted_at.replace(tzinfo=UTC)

        try:
            return VersionDraft(
                event=VersionEvent(event),
                item_type=entity_ref.item_type,
                item_id=self._item_ids.normalize(entity_ref.item_id),
                item_changes=normalize_state(item_changes),
                originator_id=self._originator_ids.normalize(originator_id),
                origin=origin,
                meta=None if meta is None else to_jsonable_python(dict(meta)),
                inserted_at=inserted_at.astimezone(UTC),
            )
        except EncodingError as exc:
            raise _invalid(exc.message, **exc.details) from exc
        except (ValidationError, ValueError, PydanticSerializationError) as exc:
            raise _invalid("version record is invalid", error=str(exc)) from exc


def _invalid(message: str, **details: Any) -> WriteError:
    return WriteError(message, details, code=codes.INVALID_ARGUMENT)
