"""create versions table"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from packages.trail_shared.config import load_settings
from services.state.version_authority.config import (
    VersionAuthoritySettings,
    resolve_version_authority_settings,
)
from services.state.version_authority.data.schema import (
    EVENT_LENGTH,
    ORIGIN_LENGTH,
    STRING_ID_LENGTH,
    JsonDocument,
    VersionPrimaryKey,
    identifier_column_type,
)

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _settings() -> VersionAuthoritySettings:
    """Resolve identifier settings that fix the column types."""
    return resolve_version_authority_settings(load_settings())


def _schema() -> str | None:
    """Return the tenant schema being migrated, if any."""
    return op.get_context().version_table_schema


def upgrade() -> None:
    """Create the append-only versions table and its lookup indexes."""
    settings = _settings()
    schema = _schema()
    name = settings.table_name

    op.create_table(
        name,
        sa.Column("id", VersionPrimaryKey, primary_key=True, autoincrement=True),
        sa.Column("event", sa.String(length=EVENT_LENGTH), nullable=False),
        sa.Column("item_type", sa.String(length=STRING_ID_LENGTH), nullable=False),
        sa.Column("item_id", identifier_column_type(settings.item_id_type), nullable=True),
        sa.Column("item_changes", JsonDocument, nullable=False),
        sa.Column(
            "originator_id",
            identifier_column_type(settings.originator_id_type),
            nullable=True,
        ),
        sa.Column("origin", sa.String(length=ORIGIN_LENGTH), nullable=True),
        sa.Column("meta", JsonDocument, nullable=True),
        sa.Column("inserted_at", sa.DateTime(timezone=True), nullable=False),
        schema=schema,
    )
    op.create_index(f"ix_{name}_originator_id", name, ["originator_id"], schema=schema)
    op.create_index(
        f"ix_{name}_item_id_item_type", name, ["item_id", "item_type"], schema=schema
    )
    op.create_index(
        f"ix_{name}_event_item_type", name, ["event", "item_type"], schema=schema
    )
    op.create_index(
        f"ix_{name}_item_type_inserted_at",
        name,
        ["item_type", "inserted_at"],
        schema=schema,
    )


def downgrade() -> None:
    """Drop the versions table and its indexes."""
    settings = _settings()
    schema = _schema()
    name = settings.table_name

    op.drop_index(f"ix_{name}_item_type_inserted_at", table_name=name, schema=schema)
    op.drop_index(f"ix_{name}_event_item_type", table_name=name, schema=schema)
    op.drop_index(f"ix_{name}_item_id_item_type", table_name=name, schema=schema)
    op.drop_index(f"ix_{name}_originator_id", table_name=name, schema=schema)
    op.drop_table(name, schema=schema)
