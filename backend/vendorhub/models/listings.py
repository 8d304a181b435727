"""
Listing model - supplier profiles and rentable items shown in search.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import (
    String,
    Float,
    DateTime,
    ForeignKey,
    JSON,
    Uuid,
    CheckConstraint,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class ListingCategory(str, enum.Enum):
    """Listing category enumeration (wedding vendors and rentable items)."""
    VENUES = "venues"
    PHOTOGRAPHY = "photography"
    VIDEOGRAPHY = "videography"
    CATERING = "catering"
    MUSIC = "music"
    FLOWERS = "flowers"
    DECOR = "decor"
    ATTIRE = "attire"
    BEAUTY = "beauty"
    PLANNING = "planning"
    ELECTRONICS = "electronics"
    FURNITURE = "furniture"
    TOOLS = "tools"
    VEHICLES = "vehicles"
    SPORTS = "sports"
    OTHER = "other"


class SubscriptionPlan(str, enum.Enum):
    """Paid visibility tier, lowest to highest."""
    NONE = "none"
    ESSENTIAL = "essential"
    FEATURED = "featured"
    ELITE = "elite"


class Listing(Base):
    """
    Listing entity - one supplier offering.
    Invariant: subscription_plan is NONE exactly when subscription_end_date is NULL.
    """
    __tablename__ = "listings"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    owner_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Details
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[ListingCategory] = mapped_column(
        SQLEnum(ListingCategory, name="listing_category"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(String(4000), nullable=False, default="")
    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    price_range: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="$",
        comment="Tier symbol ($..$$$$) or a daily rate",
    )
    images: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    # Social links
    website_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    facebook_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    instagram_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    tiktok_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Subscription (written by the billing bridge only)
    subscription_plan: Mapped[SubscriptionPlan] = mapped_column(
        SQLEnum(SubscriptionPlan, name="subscription_plan"),
        nullable=False,
        default=SubscriptionPlan.NONE,
        index=True,
    )
    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    subscription_event_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Creation time of the last applied billing event",
    )

    # Derived from reviews
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

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
            "(subscription_plan = 'NONE') = (subscription_end_date IS NULL)",
            name="listing_subscription_consistent",
        ),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, name={self.name}, plan={self.subscription_plan})>"


class City(Base):
    """City lookup table used by service-area search filters."""
    __tablename__ = "cities"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<City(id={self.id}, name={self.name})>"


class ServiceArea(Base):
    """Listing <-> City many-to-many link."""
    __tablename__ = "listing_service_areas"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    listing_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    city_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("cities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("listing_id", "city_id", name="uq_service_area_listing_city"),
    )
