"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=512), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stores_name", "stores", ["name"], unique=False)

    op.create_table(
        "facts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("subject_type", sa.String(length=32), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.String(length=255), nullable=False),
        sa.Column("value_json", sa.JSON(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False, server_default=sa.text("50.0")),
        sa.Column("verified_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("origin", sa.String(length=16), nullable=False, server_default="direct"),
        sa.Column("source_fact_id", sa.Integer(), nullable=True),
        sa.Column("source_store_id", sa.Integer(), nullable=True),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("confidence_multiplier", sa.Float(), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("last_confidence_delta", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("last_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("confidence >= 0 AND confidence <= 100", name="ck_facts_confidence_range"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_fact_id"], ["facts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["source_store_id"], ["stores.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subject_type", "store_id", "subject_id", name="uq_facts_subject"),
    )
    op.create_index("ix_facts_store_confidence", "facts", ["store_id", "confidence"], unique=False)
    op.create_index("ix_facts_price_lookup", "facts", ["subject_type", "subject_id", "origin"], unique=False)

    op.create_table(
        "contributions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contribution_uid", sa.String(length=64), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("subject_type", sa.String(length=32), nullable=False),
        sa.Column("subject_id", sa.String(length=255), nullable=False),
        sa.Column("fact_id", sa.Integer(), nullable=True),
        sa.Column("contributor_id", sa.String(length=128), nullable=True),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("confidence_delta", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("points_awarded", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["fact_id"], ["facts.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("contribution_uid"),
    )
    op.create_index("ix_contributions_store_id", "contributions", ["store_id"], unique=False)
    op.create_index("ix_contributions_fact_id", "contributions", ["fact_id"], unique=False)
    op.create_index("ix_contributions_contributor_id", "contributions", ["contributor_id"], unique=False)

    op.create_table(
        "point_awards",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contribution_uid", sa.String(length=64), nullable=False),
        sa.Column("contributor_id", sa.String(length=128), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("contribution_uid", "reason", name="uq_point_awards_contribution_reason"),
    )
    op.create_index("ix_point_awards_contributor_id", "point_awards", ["contributor_id"], unique=False)
    op.create_index("ix_point_awards_store_id", "point_awards", ["store_id"], unique=False)

    op.create_table(
        "store_pioneers",
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("contributor_id", sa.String(length=128), nullable=False),
        sa.Column("contribution_uid", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("store_id"),
    )
    op.create_index("ix_store_pioneers_contributor_id", "store_pioneers", ["contributor_id"], unique=False)

    op.create_table(
        "confirmation_receipts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contributor_id", sa.String(length=128), nullable=False),
        sa.Column("subject_type", sa.String(length=32), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.String(length=255), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "contributor_id",
            "subject_type",
            "store_id",
            "subject_id",
            name="uq_confirmation_receipts_subject",
        ),
    )

    op.create_table(
        "contributor_badges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contributor_id", sa.String(length=128), nullable=False),
        sa.Column("badge_type", sa.String(length=50), nullable=False),
        sa.Column("badge_name", sa.String(length=100), nullable=False),
        sa.Column("badge_description", sa.String(length=255), nullable=True),
        sa.Column("scope_key", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("store_id", sa.Integer(), nullable=True),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("contributor_id", "badge_type", "scope_key", name="uq_contributor_badges_scope"),
    )
    op.create_index("ix_contributor_badges_contributor_id", "contributor_badges", ["contributor_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_contributor_badges_contributor_id", table_name="contributor_badges")
    op.drop_table("contributor_badges")
    op.drop_table("confirmation_receipts")
    op.drop_index("ix_store_pioneers_contributor_id", table_name="store_pioneers")
    op.drop_table("store_pioneers")
    op.drop_index("ix_point_awards_store_id", table_name="point_awards")
    op.drop_index("ix_point_awards_contributor_id", table_name="point_awards")
    op.drop_table("point_awards")
    op.drop_index("ix_contributions_contributor_id", table_name="contributions")
    op.drop_index("ix_contributions_fact_id", table_name="contributions")
    op.drop_index("ix_contributions_store_id", table_name="contributions")
    op.drop_table("contributions")
    op.drop_index("ix_facts_price_lookup", table_name="facts")
    op.drop_index("ix_facts_store_confidence", table_name="facts")
    op.drop_table("facts")
    op.drop_index("ix_stores_name", table_name="stores")
    op.drop_table("stores")
