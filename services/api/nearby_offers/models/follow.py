"""Follow model.

Subscription edge between a user and a commerce; at most one per pair.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from nearby_offers.stores.postgres import Base


class CommerceFollow(Base):
    __tablename__ = "commerce_follows"
    __table_args__ = (UniqueConstraint("user_id", "commerce_id", name="uq_commerce_follows_user_commerce"),)

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[str] = mapped_column(String(36), index=True)
    commerce_id: Mapped[str] = mapped_column(ForeignKey("commerces.id"), index=True)

    notifications_enabled: Mapped[bool] = mapped_column(default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
