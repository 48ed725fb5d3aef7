"""Identity resolution between tracked entities and version keys."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import Column, inspect as sa_inspect
from sqlalchemy.orm import Mapper, Session

from packages.trail_shared.logging import get_logger
from services.state.version_authority.config import (
    IdentifierMode,
    IdentifierType,
    VersionAuthoritySettings,
)
from services.state.version_authority.domain import EntityRef, ItemId, Version
from services.state.version_authority.errors import ConfigurationMismatch

_LOGGER = get_logger(__name__)

TModel = TypeVar("TModel", bound=type)

_NATIVE_TYPES: dict[str, type] = {"integer": int, "string": str, "uuid": UUID}


class TypeRegistry:
    """Explicit mapping between tracked entity classes and ``item_type`` tags.

    Tags are fixed when a class is registered, so moving or renaming the
    module that defines a model never changes the type recorded on its
    versions.
    """

    def __init__(self) -> None:
        self._tags: dict[type, str] = {}
        self._models: dict[str, type] = {}

    def register(self, model: type, item_type: str | None = None) -> str:
        """Register one mapped class and return its ``item_type`` tag."""
        mapper = _mapper_for(model)
        _single_primary_key(mapper)
        tag = (item_type if item_type is not None else model.__name__).strip()
        if not tag:
            raise ConfigurationMismatch(
                "item_type tag must not be empty", {"model": model.__name__}
            )

        existing = self._models.get(tag)
        if existing is not None and existing is not model:
            raise ConfigurationMismatch(
                "item_type tag already registered for another model",
                {"item_type": tag, "model": model.__name__, "registered": existing.__name__},
            )
        previous = self._tags.get(model)
        if previous is not None and previous != tag:
            raise ConfigurationMismatch(
                "model already registered under another item_type tag",
                {"model": model.__name__, "item_type": previous},
            )

        self._tags[model] = tag
        self._models[tag] = model
        return tag

    def track(self, item_type: str | None = None) -> Callable[[TModel], TModel]:
        """Class decorator form of :meth:`register`."""

        def decorator(model: TModel) -> TModel:
            self.register(model, item_type)
            return model

        return decorator

    def item_type_for(self, model: type) -> str:
        """Return the tag for a registered class or one of its subclasses."""
        for candidate in model.__mro__:
            tag = self._tags.get(candidate)
            if tag is not None:
                return tag
        raise ConfigurationMismatch(
            "entity type is not registered for versioning",
            {"model": model.__name__},
        )

    def model_for(self, item_type: str) -> type | None:
        """Return the class registered under ``item_type``, if any."""
        return self._models.get(item_type)

    def __contains__(self, model: object) -> bool:
        return isinstance(model, type) and any(
            candidate in self._tags for candidate in model.__mro__
        )


@dataclass(frozen=True)
class IdentifierPolicy:
    """Identifier handling shared by the write path and every query path."""

    id_type: IdentifierType
    mode: IdentifierMode

    @classmethod
    def for_items(cls, settings: VersionAuthoritySettings) -> "IdentifierPolicy":
        """Build the policy applied to ``item_id`` values."""
        return cls(id_type=settings.item_id_type, mode=settings.identifier_mode)

    @classmethod
    def for_originators(
        cls, settings: VersionAuthoritySettings
    ) -> "IdentifierPolicy":
        """Build the policy applied to ``originator_id`` values."""
        mode: IdentifierMode = "native"
        if settings.identifier_mode == "string" and settings.originator_id_type == "string":
            mode = "string"
        return cls(id_type=settings.originator_id_type, mode=mode)

    def normalize(self, value: object) -> ItemId | None:
        """Return the stored form of one identifier or fail loudly."""
        if value is None:
            return None
        if isinstance(value, bool):
            raise self._mismatch(value)

        if self.mode == "string":
            if isinstance(value, str):
                return value
            if isinstance(value, (int, UUID)):
                return str(value)
            raise self._mismatch(value)

        if isinstance(value, _NATIVE_TYPES[self.id_type]):
            return value  # type: ignore[return-value]
        raise self._mismatch(value)

    def denormalize(self, value: ItemId | None, python_type: type | None) -> Any:
        """Convert a stored identifier back to an entity primary-key type.

        Returns ``None`` when the stored value cannot name a row of that type.
        """
        if value is None or python_type is None or isinstance(value, python_type):
            return value
        if not isinstance(value, str):
            return None
        try:
            if python_type is int:
                return int(value)
            if python_type is UUID:
                return UUID(value)
        except ValueError:
            return None
        return None

    def _mismatch(self, value: object) -> ConfigurationMismatch:
        return ConfigurationMismatch(
            "identifier does not match configured identifier space",
            {
                "id_type": self.id_type,
                "identifier_mode": self.mode,
                "value_type": type(value).__name__,
            },
        )


class IdentityResolver:
    """Resolve entities to ``EntityRef`` keys and versions back to live rows."""

    def __init__(self, *, registry: TypeRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> TypeRegistry:
        """Return the type registry used for tag lookups."""
        return self._registry

    def resolve(self, entity: object) -> EntityRef:
        """Return the verbatim ``(item_type, item_id)`` key for one entity."""
        item_type = self._registry.item_type_for(type(entity))
        return EntityRef(item_type=item_type, item_id=primary_key_value(entity))

    def item_type_for(self, subject: str | type) -> str:
        """Return the tag for a raw ``item_type`` string or registered class."""
        if isinstance(subject, str):
            return subject
        return self._registry.item_type_for(subject)

    def dereference(
        self,
        session: Session,
        version: Version,
        *,
        policy: IdentifierPolicy,
    ) -> object | None:
        """Look up the live entity a version describes, or ``None``.

        Always goes through ``session.get``; nothing is cached between calls
        because the row may have been deleted or recreated.
        """
        model = self._registry.model_for(version.item_type)
        if model is None:
            _LOGGER.debug("No registered model for item_type %s", version.item_type)
            return None
        if version.item_id is None:
            return None

        column = _single_primary_key(_mapper_for(model))
        ident = policy.denormalize(version.item_id, _python_type(column))
        if ident is None:
            return None
        return session.get(model, ident)


def primary_key_value(entity: object) -> Any:
    """Return the entity's primary-key value verbatim, ``None`` if unassigned."""
    state = sa_inspect(entity, raiseerr=False)
    if state is None or not hasattr(state, "mapper"):
        raise ConfigurationMismatch(
            "entity is not a mapped instance",
            {"entity_type": type(entity).__name__},
        )
    column = _single_primary_key(state.mapper)
    prop = state.mapper.get_property_by_column(column)
    return getattr(entity, prop.key)


def entity_state(entity: object) -> dict[str, Any]:
    """Return mapped column values of one entity, excluding primary keys."""
    state = sa_inspect(entity, raiseerr=False)
    if state is None or not hasattr(state, "mapper"):
        raise ConfigurationMismatch(
            "entity is not a mapped instance",
            {"entity_type": type(entity).__name__},
        )
    primary_keys = primary_key_field_names(entity)
    return {
        attr.key: getattr(entity, attr.key)
        for attr in state.mapper.column_attrs
        if attr.key not in primary_keys
    }


def mapped_field_names(entity: object) -> frozenset[str]:
    """Return the names of an entity's mapped column attributes."""
    return frozenset(attr.key for attr in sa_inspect(type(entity)).column_attrs)


def primary_key_field_names(entity: object) -> frozenset[str]:
    """Return the attribute names backing an entity's primary-key columns."""
    mapper = sa_inspect(type(entity))
    return frozenset(
        mapper.get_property_by_column(column).key for column in mapper.primary_key
    )


def _mapper_for(model: type) -> Mapper[Any]:
    mapper = sa_inspect(model, raiseerr=False)
    if not isinstance(mapper, Mapper):
        raise ConfigurationMismatch(
            "model is not a mapped class", {"model": getattr(model, "__name__", str(model))}
        )
    return mapper


def _single_primary_key(mapper: Mapper[Any]) -> Column[Any]:
    if len(mapper.primary_key) != 1:
        raise ConfigurationMismatch(
            "versioned models require exactly one primary-key column",
            {"model": mapper.class_.__name__, "columns": str(len(mapper.primary_key))},
        )
    return mapper.primary_key[0]


def _python_type(column: Column[Any]) -> type | None:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None
