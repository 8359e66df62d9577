"""Crowdsourced fact ORM model."""

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shelfwise.models.base import Base, CreatedAtMixin, IdMixin


class Fact(Base, IdMixin, CreatedAtMixin):
    """Current best-known value for one subject, with its confidence score."""

    __tablename__ = "facts"
    __table_args__ = (
        UniqueConstraint("subject_type", "store_id", "subject_id", name="uq_facts_subject"),
        CheckConstraint("confidence >= 0 AND confidence <= 100", name="ck_facts_confidence_range"),
        Index("ix_facts_store_confidence", "store_id", "confidence"),
        Index("ix_facts_price_lookup", "subject_type", "subject_id", "origin"),
    )

    subject_type: Mapped[str] = mapped_column(String(32), nullable=False)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    value_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=50.0, nullable=False)
    verified_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    origin: Mapped[str] = mapped_column(String(16), default="direct", nullable=False)
    source_fact_id: Mapped[int | None] = mapped_column(
        ForeignKey("facts.id", ondelete="SET NULL"),
        nullable=True,
    )
    source_store_id: Mapped[int | None] = mapped_column(
        ForeignKey("stores.id", ondelete="SET NULL"),
        nullable=True,
    )
    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    confidence_multiplier: Mapped[float | None] = mapped_column(Float, nullable=True)
    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    last_confidence_delta: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    last_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
