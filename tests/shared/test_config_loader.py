"""Tests for pydantic-settings-backed shared configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from packages.trail_shared.config import (
    TrailSettings,
    load_settings,
    resolve_component_settings,
)
from resources.substrates.postgres.config import PostgresSettings
from services.state.version_authority.config import (
    SERVICE_COMPONENT_ID,
    VersionAuthoritySettings,
)


def test_load_settings_uses_trail_precedence_cascade(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Init params should override env, env should override YAML, then defaults."""
    config_file = tmp_path / "trail.yaml"
    config_file.write_text(
        "\n".join(
            [
                "logging:",
                "  level: WARNING",
                "  service: trail-yaml",
                "components:",
                "  substrate:",
                "    postgres:",
                "      pool_size: 7",
                "  service:",
                "    version_authority:",
                "      item_id_type: uuid",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("TRAIL_LOGGING__LEVEL", "ERROR")
    monkeypatch.setenv("TRAIL_COMPONENTS__SUBSTRATE__POSTGRES__POOL_SIZE", "9")

    settings = load_settings(config_path=config_file, logging={"level": "DEBUG"})

    postgres = resolve_component_settings(
        settings=settings,
        component_id="substrate_postgres",
        model=PostgresSettings,
    )
    versions = resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=VersionAuthoritySettings,
    )

    assert settings.logging.level == "DEBUG"
    assert settings.logging.service == "trail-yaml"
    assert postgres.pool_size == 9
    assert versions.item_id_type == "uuid"
    assert versions.table_name == "versions"


def test_load_settings_uses_model_defaults_when_sources_missing(tmp_path: Path) -> None:
    """Settings should fall back to model defaults when env and YAML are absent."""
    settings = load_settings(config_path=tmp_path / "trail.yaml")
    postgres = resolve_component_settings(
        settings=settings,
        component_id="substrate_postgres",
        model=PostgresSettings,
    )

    assert settings.logging.service == "trail"
    assert settings.logging.level == "INFO"
    assert postgres.pool_size == 5


def test_load_settings_rejects_directory_paths(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="must be a file"):
        load_settings(config_path=tmp_path)


def test_flat_component_keys_are_rejected() -> None:
    """Components must be grouped under ``service`` or ``substrate`` namespaces."""
    with pytest.raises(ValidationError, match="components.service.version_authority"):
        TrailSettings(components={"service_version_authority": {}})


def test_resolve_component_settings_rejects_unknown_kinds() -> None:
    with pytest.raises(ValueError, match="unsupported component id"):
        resolve_component_settings(
            settings=TrailSettings(),
            component_id="actor_scheduler",
            model=VersionAuthoritySettings,
        )
