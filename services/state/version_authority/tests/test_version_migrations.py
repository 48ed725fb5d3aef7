"""Tests for the Alembic migration that creates the versions table."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Engine, inspect

from services.state.version_authority.config import VersionAuthoritySettings
from services.state.version_authority.data import verify_versions_table

_MIGRATION = (
    Path(__file__).resolve().parents[1]
    / "migrations"
    / "versions"
    / "20261019_0001_create_versions.py"
)


def _load_migration(
    monkeypatch: pytest.MonkeyPatch, settings: VersionAuthoritySettings
) -> ModuleType:
    spec = importlib.util.spec_from_file_location("versions_0001", _MIGRATION)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    monkeypatch.setattr(module, "_settings", lambda: settings)
    return module


def _run(engine: Engine, step: str, module: ModuleType, schema: str | None = None) -> None:
    with engine.begin() as connection:
        context = MigrationContext.configure(
            connection, opts={"version_table_schema": schema}
        )
        with Operations.context(context):
            getattr(module, step)()


def test_upgrade_creates_table_and_indexes(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings = VersionAuthoritySettings()
    module = _load_migration(monkeypatch, settings)

    _run(engine, "upgrade", module)

    inspector = inspect(engine)
    assert inspector.has_table("versions")
    assert {index["name"] for index in inspector.get_indexes("versions")} == {
        "ix_versions_originator_id",
        "ix_versions_item_id_item_type",
        "ix_versions_event_item_type",
        "ix_versions_item_type_inserted_at",
    }
    verify_versions_table(engine, settings)


def test_upgrade_uses_configured_identifier_types(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings = VersionAuthoritySettings(
        table_name="string_versions",
        item_id_type="string",
        identifier_mode="string",
        originator_id_type="uuid",
    )
    module = _load_migration(monkeypatch, settings)

    _run(engine, "upgrade", module)

    verify_versions_table(engine, settings)


def test_upgrade_targets_tenant_schema(
    engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings = VersionAuthoritySettings()
    module = _load_migration(monkeypatch, settings)

    _run(engine, "upgrade", module, schema="tenant_a")

    inspector = inspect(engine)
    assert inspector.has_table("versions", schema="tenant_a")
    assert not inspector.has_table("versions")


def test_downgrade_drops_table(engine: Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    module = _load_migration(monkeypatch, VersionAuthoritySettings())

    _run(engine, "upgrade", module)
    _run(engine, "downgrade", module)

    assert not inspect(engine).has_table("versions")
