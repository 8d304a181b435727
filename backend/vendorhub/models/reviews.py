"""
Review model - consumer feedback on a listing, with one optional supplier response.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class Review(Base):
    """
    Review entity - one per (listing, consumer).
    """
    __tablename__ = "reviews"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    listing_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consumer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Rating (1-5 scale)
    rating: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    content: Mapped[str] = mapped_column(
        String(4000),
        nullable=False,
        default="",
    )

    # Supplier response (write-once)
    response: Mapped[Optional[str]] = mapped_column(String(4000), nullable=True)
    response_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "rating >= 1 AND rating <= 5",
            name="review_rating_range",
        ),
        UniqueConstraint("listing_id", "consumer_id", name="uq_review_listing_consumer"),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, listing_id={self.listing_id}, rating={self.rating})>"
