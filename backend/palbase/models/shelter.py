"""Shelter model: the organization a pet is listed by."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palbase.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from palbase.models.pet import Pet


class Shelter(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Shelter or rescue organization, keyed by (source, source_id)."""

    __tablename__ = "shelters"
    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_shelters_source_source_id"),
    )

    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    zip: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    pets: Mapped[list["Pet"]] = relationship(back_populates="shelter")

    def __repr__(self) -> str:
        return f"<Shelter(id={self.id}, source='{self.source}', source_id='{self.source_id}')>"
