"""Contribution ledger ORM model."""

from sqlalchemy import Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shelfwise.models.base import Base, CreatedAtMixin, IdMixin


class Contribution(Base, IdMixin, CreatedAtMixin):
    """Append-only record of one submitted (or system-propagated) observation."""

    __tablename__ = "contributions"

    contribution_uid: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    subject_type: Mapped[str] = mapped_column(String(32), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    fact_id: Mapped[int | None] = mapped_column(
        ForeignKey("facts.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    contributor_id: Mapped[str | None] = mapped_column(String(128), index=True, nullable=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    confidence_delta: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    points_awarded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
