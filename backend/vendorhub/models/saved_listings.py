"""
Saved listing model - a consumer's favourites.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class SavedListing(Base):
    """Consumer bookmark of a listing, unique per (consumer, listing)."""
    __tablename__ = "saved_listings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    consumer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    listing_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    note: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("consumer_id", "listing_id", name="uq_saved_listing"),
    )

    def __repr__(self) -> str:
        return f"<SavedListing(consumer_id={self.consumer_id}, listing_id={self.listing_id})>"
