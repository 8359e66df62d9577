"""Point award ledger ORM model."""

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shelfwise.models.base import Base, CreatedAtMixin, IdMixin


class PointAward(Base, IdMixin, CreatedAtMixin):
    """Points earned by a contributor, keyed per contribution and reason."""

    __tablename__ = "point_awards"
    __table_args__ = (
        UniqueConstraint("contribution_uid", "reason", name="uq_point_awards_contribution_reason"),
    )

    contribution_uid: Mapped[str] = mapped_column(String(64), nullable=False)
    contributor_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    store_id: Mapped[int | None] = mapped_column(
        ForeignKey("stores.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
