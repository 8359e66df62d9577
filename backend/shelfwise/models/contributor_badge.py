"""Contributor badge ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shelfwise.models.base import Base, IdMixin


class ContributorBadge(Base, IdMixin):
    """Achievement badge; `scope_key` is the store id for per-store badges, else empty."""

    __tablename__ = "contributor_badges"
    __table_args__ = (
        UniqueConstraint(
            "contributor_id",
            "badge_type",
            "scope_key",
            name="uq_contributor_badges_scope",
        ),
    )

    contributor_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    badge_type: Mapped[str] = mapped_column(String(50), nullable=False)
    badge_name: Mapped[str] = mapped_column(String(100), nullable=False)
    badge_description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    scope_key: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    store_id: Mapped[int | None] = mapped_column(
        ForeignKey("stores.id", ondelete="SET NULL"),
        nullable=True,
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
