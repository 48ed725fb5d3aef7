"""Version Authority native package exports."""

from services.state.version_authority.config import (
    SERVICE_COMPONENT_ID,
    VersionAuthoritySettings,
)
from services.state.version_authority.domain import (
    EntityRef,
    QueryOptions,
    TrackedResult,
    Version,
    VersionEvent,
)
from services.state.version_authority.encoder import encode
from services.state.version_authority.errors import (
    ConfigurationMismatch,
    EncodingError,
    InvalidQueryOptions,
    VersionAuthorityError,
    WriteError,
)
from services.state.version_authority.identity import TypeRegistry
from services.state.version_authority.implementation import DefaultVersionAuthority
from services.state.version_authority.service import (
    VersionAuthorityService,
    build_version_authority,
)

__all__ = [
    "SERVICE_COMPONENT_ID",
    "ConfigurationMismatch",
    "DefaultVersionAuthority",
    "EncodingError",
    "EntityRef",
    "InvalidQueryOptions",
    "QueryOptions",
    "TrackedResult",
    "TypeRegistry",
    "Version",
    "VersionAuthorityError",
    "VersionAuthorityService",
    "VersionAuthoritySettings",
    "VersionEvent",
    "WriteError",
    "build_version_authority",
    "encode",
]
