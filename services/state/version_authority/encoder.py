"""Change encoding for version ``item_changes`` payloads.

``encode`` turns prior/new entity state mappings into the diff stored on a
version. Field values are normalized to JSON-compatible form before they are
compared, so the diff matches exactly what the datastore will persist.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final, Literal

from pydantic_core import PydanticSerializationError, to_jsonable_python

from services.state.version_authority.domain import VersionEvent
from services.state.version_authority.errors import EncodingError

TOMBSTONE_FIELD: Final = "_tombstone"

DeletedChanges = Literal["snapshot", "tombstone"]


def encode(
    event: VersionEvent | str,
    prior_state: Mapping[str, Any] | None,
    new_state: Mapping[str, Any] | None,
    *,
    deleted_changes: DeletedChanges = "snapshot",
) -> dict[str, Any]:
    """Return the ``item_changes`` payload for one mutation.

    Created versions carry the full new state, updated versions only the
    fields whose value changed, deleted versions the last known state (or a
    tombstone marker). Unknown fields pass through untouched.
    """
    resolved = _coerce_event(event)

    if resolved is VersionEvent.CREATED:
        return normalize_state(_require_state(new_state, "new_state"))

    if resolved is VersionEvent.UPDATED:
        prior = normalize_state(_require_state(prior_state, "prior_state"))
        new = normalize_state(_require_state(new_state, "new_state"))
        return {
            field: value
            for field, value in new.items()
            if field not in prior or not _same_value(prior[field], value)
        }

    if deleted_changes == "tombstone":
        return {TOMBSTONE_FIELD: True}
    if deleted_changes != "snapshot":
        raise EncodingError(
            "unsupported deleted_changes mode",
            {"deleted_changes": deleted_changes},
        )
    return normalize_state(_require_state(prior_state, "prior_state"))


def normalize_state(state: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-compatible copy of one entity state mapping.

    Binary values are stored base64-encoded so arbitrary bytes survive the
    JSON column.
    """
    if not isinstance(state, Mapping):
        raise EncodingError(
            "entity state must be a mapping",
            {"state_type": type(state).__name__},
        )

    normalized: dict[str, Any] = {}
    for field, value in state.items():
        if not isinstance(field, str):
            raise EncodingError(
                "entity state field names must be strings",
                {"field": repr(field)},
            )
        try:
            normalized[field] = to_jsonable_python(value, bytes_mode="base64")
        except (PydanticSerializationError, ValueError) as exc:
            raise EncodingError(
                "entity state value is not serializable",
                {"field": field, "value_type": type(value).__name__},
            ) from exc
    return normalized


def _coerce_event(event: VersionEvent | str) -> VersionEvent:
    """Parse one event tag, rejecting unknown values."""
    try:
        return VersionEvent(event)
    except ValueError as exc:
        raise EncodingError("unknown version event", {"event": str(event)}) from exc


def _require_state(
    state: Mapping[str, Any] | None, name: str
) -> Mapping[str, Any]:
    """Fail when a state required by the event kind is missing."""
    if state is None:
        raise EncodingError(f"{name} is required for this event", {"state": name})
    return state


def _same_value(before: Any, after: Any) -> bool:
    """Compare normalized values without treating ``True`` and ``1`` as equal."""
    return type(before) is type(after) and before == after
