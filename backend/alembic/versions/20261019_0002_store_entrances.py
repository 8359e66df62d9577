"""store entrances and chain key

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:02
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: str | None = "20261019_0001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

ENTRANCE_TYPES = (
    "main",
    "side",
    "back",
    "pharmacy",
    "garden",
    "restrooms",
    "cash_registers",
    "self_checkout",
    "customer_service",
    "deli_counter",
    "bakery_counter",
    "returns_desk",
    "atm",
    "photo_center",
    "floral",
    "garden_center",
    "main_entrance",
    "side_entrance",
)


def upgrade() -> None:
    op.add_column("stores", sa.Column("chain_key", sa.String(length=255), nullable=True))
    # Python casefold() has no SQL equivalent; lower() matches it for ASCII names.
    op.execute(
        "UPDATE stores SET chain_key = lower(split_part(btrim(name), ' ', 1)) "
        "WHERE btrim(name) <> ''"
    )
    op.create_index("ix_stores_chain_key", "stores", ["chain_key"], unique=False)

    op.create_table(
        "store_entrances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("entrance_type", sa.String(length=30), nullable=False, server_default="main"),
        sa.Column("position_description", sa.String(length=255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("contributor_id", sa.String(length=128), nullable=False),
        sa.Column("contribution_uid", sa.String(length=64), nullable=False),
        sa.Column("verified_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "entrance_type IN ({})".format(", ".join(f"'{value}'" for value in ENTRANCE_TYPES)),
            name="ck_store_entrances_type",
        ),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("contribution_uid"),
    )
    op.create_index("ix_store_entrances_store_id", "store_entrances", ["store_id"], unique=False)
    op.create_index("ix_store_entrances_contributor_id", "store_entrances", ["contributor_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_store_entrances_contributor_id", table_name="store_entrances")
    op.drop_index("ix_store_entrances_store_id", table_name="store_entrances")
    op.drop_table("store_entrances")
    op.drop_index("ix_stores_chain_key", table_name="stores")
    op.drop_column("stores", "chain_key")
