from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_user_profile"
down_revision = "0001_create_schema"
branch_labels = None
depends_on = None

_JSON = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def _columns_by_name(table_name: str) -> set[str]:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return {column["name"] for column in inspector.get_columns(table_name)}


def upgrade() -> None:
    existing = _columns_by_name("users")

    if "address_json" not in existing:
        op.add_column("users", sa.Column("address_json", _JSON, nullable=True))

    if "preferences_json" not in existing:
        op.add_column("users", sa.Column("preferences_json", _JSON, nullable=True))

    if "updated_at" not in existing:
        op.add_column(
            "users",
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        )


def downgrade() -> None:
    existing = _columns_by_name("users")

    for column in ("updated_at", "preferences_json", "address_json"):
        if column in existing:
            op.drop_column("users", column)
