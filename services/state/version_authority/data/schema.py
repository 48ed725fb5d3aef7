"""SQLAlchemy table definitions owned by Version Authority."""

from __future__ import annotations

from sqlalchemy import (
    CHAR,
    JSON,
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Uuid,
    inspect,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.types import TypeEngine

from services.state.version_authority.config import (
    IdentifierType,
    VersionAuthoritySettings,
)
from services.state.version_authority.errors import ConfigurationMismatch

EVENT_LENGTH = 10
ORIGIN_LENGTH = 50
STRING_ID_LENGTH = 255

JsonDocument = JSON().with_variant(JSONB(), "postgresql")
VersionPrimaryKey = BigInteger().with_variant(Integer(), "sqlite")


def identifier_column_type(id_type: IdentifierType) -> TypeEngine[object]:
    """Return the storage type for one configured identifier space."""
    if id_type == "integer":
        return BigInteger()
    if id_type == "string":
        return String(STRING_ID_LENGTH)
    return Uuid()


def build_versions_table(
    settings: VersionAuthoritySettings,
    metadata: MetaData | None = None,
) -> Table:
    """Build the append-only versions table for one configuration."""
    name = settings.table_name
    return Table(
        name,
        metadata if metadata is not None else MetaData(),
        Column("id", VersionPrimaryKey, primary_key=True, autoincrement=True),
        Column("event", String(EVENT_LENGTH), nullable=False),
        Column("item_type", String(STRING_ID_LENGTH), nullable=False),
        Column("item_id", identifier_column_type(settings.item_id_type), nullable=True),
        Column("item_changes", JsonDocument, nullable=False),
        Column(
            "originator_id",
            identifier_column_type(settings.originator_id_type),
            nullable=True,
        ),
        Column("origin", String(ORIGIN_LENGTH), nullable=True),
        Column("meta", JsonDocument, nullable=True),
        Column("inserted_at", DateTime(timezone=True), nullable=False),
        Index(f"ix_{name}_originator_id", "originator_id"),
        Index(f"ix_{name}_item_id_item_type", "item_id", "item_type"),
        Index(f"ix_{name}_event_item_type", "event", "item_type"),
        Index(f"ix_{name}_item_type_inserted_at", "item_type", "inserted_at"),
    )


def verify_versions_table(
    bind: Engine | Connection,
    settings: VersionAuthoritySettings,
    *,
    scope: str | None = None,
) -> None:
    """Fail when the stored versions table disagrees with identifier settings.

    Run at startup so data written under one identifier space is never read
    back under another.
    """
    inspector = inspect(bind)
    if not inspector.has_table(settings.table_name, schema=scope):
        raise ConfigurationMismatch(
            "versions table does not exist",
            {"table_name": settings.table_name, "scope": scope or ""},
        )

    columns = {
        column["name"]: column["type"]
        for column in inspector.get_columns(settings.table_name, schema=scope)
    }
    for column_name, id_type in (
        ("item_id", settings.item_id_type),
        ("originator_id", settings.originator_id_type),
    ):
        stored = columns.get(column_name)
        if stored is None or not _matches(stored, id_type):
            raise ConfigurationMismatch(
                "stored identifier column does not match configured type",
                {
                    "table_name": settings.table_name,
                    "column": column_name,
                    "configured": id_type,
                    "stored": str(stored),
                },
            )


def _matches(stored: TypeEngine[object], id_type: IdentifierType) -> bool:
    if id_type == "integer":
        return isinstance(stored, Integer)
    if id_type == "uuid":
        # Dialects without a native UUID type store it as CHAR(32).
        return isinstance(stored, Uuid) or (
            isinstance(stored, CHAR) and stored.length == 32
        )
    return isinstance(stored, String) and not isinstance(stored, Uuid)
