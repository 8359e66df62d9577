"""Confirmation cooldown ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shelfwise.models.base import Base, IdMixin


class ConfirmationReceipt(Base, IdMixin):
    """Last confirmation time per contributor and subject."""

    __tablename__ = "confirmation_receipts"
    __table_args__ = (
        UniqueConstraint(
            "contributor_id",
            "subject_type",
            "store_id",
            "subject_id",
            name="uq_confirmation_receipts_subject",
        ),
    )

    contributor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    subject_type: Mapped[str] = mapped_column(String(32), nullable=False)
    store_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    confirmed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
