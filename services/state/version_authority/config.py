"""Pydantic settings for Version Authority behavior."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from packages.trail_shared.config import TrailSettings, resolve_component_settings

SERVICE_COMPONENT_ID = "service_version_authority"

IdentifierType = Literal["integer", "string", "uuid"]
IdentifierMode = Literal["native", "string"]

_TABLE_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")


class VersionAuthoritySettings(BaseModel):
    """Version Authority runtime behavior settings.

    ``item_id_type`` fixes the storage column type of ``item_id``.
    ``identifier_mode`` controls id handling on both the write and query
    paths: ``native`` stores ids verbatim, ``string`` normalizes integer and
    UUID ids to strings. Both must stay constant for the life of a dataset.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table_name: str = "versions"
    item_id_type: IdentifierType = "integer"
    identifier_mode: IdentifierMode = "native"
    originator_id_type: IdentifierType = "integer"
    deleted_changes: Literal["snapshot", "tombstone"] = "snapshot"
    reject_unknown_options: bool = True

    @field_validator("table_name")
    @classmethod
    def _validate_table_name(cls, value: str) -> str:
        """Require a lowercase SQL identifier for the versions table."""
        normalized = value.strip()
        if not _TABLE_NAME_PATTERN.match(normalized):
            raise ValueError("table_name must be a lowercase SQL identifier")
        return normalized

    @model_validator(mode="after")
    def _validate_identifier_mode(self) -> "VersionAuthoritySettings":
        """String identifier mode needs string storage for item ids."""
        if self.identifier_mode == "string" and self.item_id_type != "string":
            raise ValueError(
                "identifier_mode 'string' requires item_id_type 'string'"
            )
        return self


def resolve_version_authority_settings(
    settings: TrailSettings,
) -> VersionAuthoritySettings:
    """Resolve settings from ``components.service.version_authority``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=VersionAuthoritySettings,
    )
