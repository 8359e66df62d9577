"""Store entrance ORM model."""

from sqlalchemy import CheckConstraint, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shelfwise.models.base import Base, CreatedAtMixin, IdMixin

ENTRANCE_TYPES: tuple[str, ...] = (
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


class StoreEntrance(Base, IdMixin, CreatedAtMixin):
    """A mapped entry point or landmark of a store, used for in-store routing."""

    __tablename__ = "store_entrances"
    __table_args__ = (
        CheckConstraint(
            "entrance_type IN ({})".format(", ".join(f"'{value}'" for value in ENTRANCE_TYPES)),
            name="ck_store_entrances_type",
        ),
    )

    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    entrance_type: Mapped[str] = mapped_column(String(30), default="main", nullable=False)
    position_description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    contributor_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    contribution_uid: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    verified_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
