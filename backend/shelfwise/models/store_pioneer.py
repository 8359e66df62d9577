"""First-explorer guard ORM model."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from shelfwise.models.base import Base, CreatedAtMixin


class StorePioneer(Base, CreatedAtMixin):
    """The first contributor to map a store; at most one row per store."""

    __tablename__ = "store_pioneers"

    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        primary_key=True,
    )
    contributor_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    contribution_uid: Mapped[str] = mapped_column(String(64), nullable=False)
