"""Shared fixtures for Version Authority tests over in-memory SQLite."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import Engine, MetaData, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resources.substrates.postgres import create_session_factory
from services.state.version_authority.config import VersionAuthoritySettings
from services.state.version_authority.identity import TypeRegistry
from services.state.version_authority.implementation import DefaultVersionAuthority
from services.state.version_authority.tests.versioned_models import (
    Admin,
    Base,
    Document,
    Post,
    Tag,
    Widget,
)

TENANT_SCHEMA = "tenant_a"


class StepClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value


@pytest.fixture()
def engine() -> Iterator[Engine]:
    """Provide one shared in-memory SQLite engine with a tenant schema attached."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _attach_tenant(dbapi_connection, connection_record) -> None:
        del connection_record
        dbapi_connection.execute(f"ATTACH DATABASE ':memory:' AS {TENANT_SCHEMA}")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture()
def registry() -> TypeRegistry:
    registry = TypeRegistry()
    registry.register(Widget)
    registry.register(Post)
    registry.register(Admin)
    registry.register(Tag)
    registry.register(Document)
    return registry


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def settings() -> VersionAuthoritySettings:
    return VersionAuthoritySettings()


@pytest.fixture()
def build_authority(
    engine: Engine,
    session_factory: sessionmaker[Session],
    registry: TypeRegistry,
    clock: StepClock,
) -> Callable[..., DefaultVersionAuthority]:
    """Return a builder creating an authority and its versions tables.

    Tables are created in the default schema and in the attached tenant
    schema.
    """

    def build(
        settings: VersionAuthoritySettings | None = None,
        **overrides: Any,
    ) -> DefaultVersionAuthority:
        overrides.setdefault("now_provider", clock)
        authority = DefaultVersionAuthority(
            settings=settings or VersionAuthoritySettings(),
            registry=registry,
            session_factory=session_factory,
            **overrides,
        )
        tenant_table = authority.table.to_metadata(MetaData(), schema=TENANT_SCHEMA)
        with engine.begin() as connection:
            authority.table.create(connection, checkfirst=True)
            tenant_table.create(connection, checkfirst=True)
        return authority

    return build


@pytest.fixture()
def authority(
    build_authority: Callable[..., DefaultVersionAuthority],
    settings: VersionAuthoritySettings,
) -> DefaultVersionAuthority:
    """Provide a default authority with its versions tables created."""
    return build_authority(settings)
