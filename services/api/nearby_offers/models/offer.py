"""Offer model.

An offer belongs to exactly one commerce and is active only while
`starts_at <= now <= ends_at`.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from nearby_offers.stores.postgres import Base


def generate_offer_id() -> str:
    """Generate unique offer ID."""
    return str(uuid4())


class Offer(Base):
    """Time-boxed offer published by a commerce."""

    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_offer_id)

    # Relations
    commerce_id: Mapped[str] = mapped_column(ForeignKey("commerces.id"), index=True)

    # Display
    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str | None] = mapped_column(Text)

    # Validity window
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    # Minimum membership tier required to redeem
    required_tier: Mapped[str] = mapped_column(String(50), default="basic")

    # Author (owner of the commerce or an admin)
    user_id: Mapped[str | None] = mapped_column(String(36))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Offer {self.id} {self.title!r}>"
