"""Context propagation helpers for structured logging.

A ``contextvars``-backed mapping lets identifiers such as ``item_type`` and
``item_id`` ride along on every log line emitted while a version is written or
a history query runs, without threading them through each call.

The bound mapping is replaced, never mutated, so a snapshot taken by one log
record cannot change under a later bind.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Iterator, Mapping

from . import fields

_EMPTY: Mapping[str, str] = MappingProxyType({})
_LOG_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar(
    "trail_log_context", default=_EMPTY
)


def get_context() -> dict[str, str]:
    """Return a mutable copy of the bound logging context."""
    return dict(_LOG_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Merge non-``None`` values into the bound context as strings."""
    merged = {
        **_LOG_CONTEXT.get(),
        **{str(key): str(value) for key, value in values.items() if value is not None},
    }
    _LOG_CONTEXT.set(MappingProxyType(merged))


def clear_context(*keys: str) -> None:
    """Drop selected keys, or every key when none are named."""
    if not keys:
        _LOG_CONTEXT.set(_EMPTY)
        return
    remaining = {
        key: value for key, value in _LOG_CONTEXT.get().items() if key not in keys
    }
    _LOG_CONTEXT.set(MappingProxyType(remaining))


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Bind ``values`` for one block and restore the previous context after."""
    token = _LOG_CONTEXT.set(_LOG_CONTEXT.get())
    try:
        bind_context(**dict(values))
        yield
    finally:
        _LOG_CONTEXT.reset(token)


@contextmanager
def operation_context(
    operation: str,
    *,
    item_type: str | None = None,
    item_id: object | None = None,
    scope: str | None = None,
    **extra: object,
) -> Iterator[None]:
    """Bind the identifiers of one version write or history query."""
    values: dict[str, object] = {
        fields.OPERATION: operation,
        fields.ITEM_TYPE: item_type,
        fields.ITEM_ID: item_id,
        fields.SCOPE: scope,
    }
    values.update(extra)
    with log_context(values):
        yield
