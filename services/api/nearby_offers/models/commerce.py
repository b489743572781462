"""Commerce model.

A physical store listed in the directory. Only approved commerces are visible
to discovery; `latitude`/`longitude` feed the distance ranking and
`categories` the category filter.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Float, Index, String, Text, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from nearby_offers.stores.postgres import Base


def generate_commerce_id() -> str:
    """Generate unique commerce ID."""
    return str(uuid4())


class Commerce(Base):
    """Store listed in the directory."""

    __tablename__ = "commerces"
    __table_args__ = (Index("ix_commerces_categories_gin", "categories", postgresql_using="gin"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_commerce_id)

    # Display
    name: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str] = mapped_column(String(500))
    phone: Mapped[str | None] = mapped_column(String(50))
    opening_hours: Mapped[str | None] = mapped_column(String(200))
    image_url: Mapped[str | None] = mapped_column(Text)

    # Location (WGS84 degrees)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)

    # Category tags, e.g. ["Restauración", "Moda"]
    categories: Mapped[list[str]] = mapped_column(ARRAY(String(100)), default=list)

    # Moderation
    is_approved: Mapped[bool] = mapped_column(default=False, index=True)
    owner_id: Mapped[str | None] = mapped_column(String(36), index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Commerce {self.id} {self.name}>"
