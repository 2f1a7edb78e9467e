"""Pet model: the canonical adoption listing."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palbase.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from palbase.models.shelter import Shelter


class Pet(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """An adoptable animal as seen on one upstream source.

    (source, source_id) is the natural key. Re-ingestion updates the row in
    place; first_seen_at is written once and last_seen_at on every sighting.
    """

    __tablename__ = "pets"
    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_pets_source_source_id"),
        Index("ix_pets_source_status_last_seen", "source", "status", "last_seen_at"),
    )

    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    species: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="other",
        comment="dog, cat, rabbit, bird, small_animal, horse, reptile, fish, other",
    )
    breed_primary: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    breed_secondary: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    age: Mapped[Optional[str]] = mapped_column(String(10), nullable=True, comment="baby, young, adult, senior")
    size: Mapped[Optional[str]] = mapped_column(String(10), nullable=True, comment="small, medium, large, xlarge")
    gender: Mapped[str] = mapped_column(String(10), nullable=False, default="unknown")
    color: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    location_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location_state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    location_zip: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    shelter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("shelters.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    shelter_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shelter_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shelter_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Tri-state: NULL means the source did not say
    good_with_kids: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    good_with_dogs: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    good_with_cats: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    house_trained: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    spayed_neutered: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    special_needs: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    adoption_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active, adopted, removed",
    )
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    shelter: Mapped[Optional["Shelter"]] = relationship(back_populates="pets")

    def __repr__(self) -> str:
        return f"<Pet(id={self.id}, source='{self.source}', source_id='{self.source_id}', status='{self.status}')>"
