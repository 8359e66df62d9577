"""Store ORM model."""

from sqlalchemy import Float, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from shelfwise.models.base import Base, CreatedAtMixin, IdMixin
from shelfwise.propagation.geo import chain_token


class Store(Base, IdMixin, CreatedAtMixin):
    """Physical store that crowdsourced facts hang off."""

    __tablename__ = "stores"

    name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    # Case-folded first word of the name; kept in step with ``name`` on every write.
    chain_key: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    @validates("name")
    def _sync_chain_key(self, key: str, name: str) -> str:
        self.chain_key = chain_token(name)
        return name
