"""Data-layer exports for Version Authority."""

from services.state.version_authority.data.repository import SqlVersionRepository
from services.state.version_authority.data.runtime import VersionPostgresRuntime
from services.state.version_authority.data.schema import (
    build_versions_table,
    verify_versions_table,
)

__all__ = [
    "SqlVersionRepository",
    "VersionPostgresRuntime",
    "build_versions_table",
    "verify_versions_table",
]
