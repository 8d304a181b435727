"""Listing directory service.

Search applies the predicate filters in SQL and hands the result set to the
ranking policy. Listing registration and settings edits are owner-only and
never touch subscription fields, which belong to the billing bridge.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from vendorhub.api.middleware.error_handler import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
)
from vendorhub.lib.jwt import Principal
from vendorhub.lib.logging import get_logger
from vendorhub.models.listings import City, Listing, ListingCategory, ServiceArea, SubscriptionPlan
from vendorhub.models.saved_listings import SavedListing
from vendorhub.models.users import User
from vendorhub.services.ranking import rank

logger = get_logger(__name__)

# Fields a supplier may set on their own listing
EDITABLE_FIELDS = frozenset({
    "name",
    "category",
    "description",
    "location",
    "price_range",
    "images",
    "website_url",
    "facebook_url",
    "instagram_url",
    "tiktok_url",
    "youtube_url",
})


@dataclass
class ListingFilters:
    """Search predicates; None means 'any'."""
    term: Optional[str] = None
    category: Optional[ListingCategory] = None
    price_range: Optional[str] = None
    min_rating: Optional[float] = None
    city_id: Optional[UUID] = None
    location: Optional[str] = None


def _contains_pattern(text: str) -> str:
    """Case-folded LIKE pattern matching `text` literally anywhere."""
    escaped = text.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ListingService:
    """Listing search, registration, settings and favourites."""

    def __init__(self, session: Session):
        self.session = session

    # ===== Helpers =====

    def get_listing(self, listing_id: UUID) -> Listing:
        listing = self.session.get(Listing, listing_id)
        if listing is None:
            raise NotFoundException("Listing", str(listing_id))
        return listing

    def _owned_listing(self, principal: Optional[Principal], listing_id: UUID) -> Listing:
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")
        listing = self.get_listing(listing_id)
        if listing.owner_id != principal.user_id:
            raise ForbiddenException("You can only manage your own listings")
        return listing

    @staticmethod
    def _require_consumer(principal: Optional[Principal]) -> Principal:
        if principal is None:
            raise UnauthorizedException("Please sign in to save listings")
        if not principal.is_consumer:
            raise ForbiddenException("Only consumers can save listings")
        return principal

    # ===== Search =====

    def search(self, filters: Optional[ListingFilters] = None) -> List[Listing]:
        """Filtered listings ordered by subscription tier.

        Within a tier, newest listings come first; that base order is what
        the ranking keeps stable.
        """
        filters = filters or ListingFilters()
        stmt = select(Listing)

        if filters.term:
            term = filters.term.strip().lower()
            pattern = _contains_pattern(term)
            clauses = [
                func.lower(Listing.name).like(pattern, escape="\\"),
                func.lower(Listing.description).like(pattern, escape="\\"),
            ]
            # Category names match too ("photo" finds photography listings)
            matching_categories = [c for c in ListingCategory if term in c.value]
            if matching_categories:
                clauses.append(Listing.category.in_(matching_categories))
            stmt = stmt.where(or_(*clauses))
        if filters.category:
            stmt = stmt.where(Listing.category == filters.category)
        if filters.price_range:
            stmt = stmt.where(Listing.price_range == filters.price_range)
        if filters.min_rating is not None:
            stmt = stmt.where(Listing.rating >= filters.min_rating)
        if filters.location:
            stmt = stmt.where(
                func.lower(Listing.location).like(_contains_pattern(filters.location), escape="\\")
            )
        if filters.city_id:
            stmt = stmt.where(
                Listing.id.in_(select(ServiceArea.listing_id).where(ServiceArea.city_id == filters.city_id))
            )

        stmt = stmt.order_by(Listing.created_at.desc(), Listing.id)
        return rank(self.session.execute(stmt).scalars().all())

    def admin_directory(
        self,
        principal: Optional[Principal],
        term: Optional[str] = None,
        category: Optional[ListingCategory] = None,
        plan: Optional[SubscriptionPlan] = None,
    ) -> List[Tuple[Listing, Optional[str]]]:
        """Every listing with its owner's email, by name. Admin only.

        `plan` matches the stored plan, so lapsed subscriptions the sweep has
        not reset yet still show under their paid plan.
        """
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")
        if not principal.is_admin:
            raise ForbiddenException("Only administrators can browse the listing directory")

        stmt = select(Listing, User.email).outerjoin(User, User.id == Listing.owner_id)
        if term:
            pattern = _contains_pattern(term)
            stmt = stmt.where(or_(
                func.lower(Listing.name).like(pattern, escape="\\"),
                func.lower(User.email).like(pattern, escape="\\"),
            ))
        if category:
            stmt = stmt.where(Listing.category == category)
        if plan:
            stmt = stmt.where(Listing.subscription_plan == plan)

        stmt = stmt.order_by(Listing.name, Listing.id)
        return [(listing, email) for listing, email in self.session.execute(stmt).all()]

    # ===== Registration and settings =====

    def create_listing(self, principal: Optional[Principal], data: Dict[str, Any]) -> Listing:
        """Register a new listing owned by the calling supplier."""
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")
        if not principal.is_supplier:
            raise ForbiddenException("Only suppliers can create listings")

        values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        if not values.get("name"):
            raise BadRequestException("Listing name is required", details={"field": "name"})
        if not values.get("category"):
            raise BadRequestException("Listing category is required", details={"field": "category"})

        listing = Listing(owner_id=principal.user_id, **values)
        self.session.add(listing)
        self.session.commit()

        logger.info(
            "Listing created",
            extra={"listing_id": str(listing.id), "owner_id": str(principal.user_id)},
        )
        return listing

    def update_listing(
        self,
        principal: Optional[Principal],
        listing_id: UUID,
        changes: Dict[str, Any],
    ) -> Listing:
        """Apply settings changes from the owner. Unknown keys are rejected."""
        listing = self._owned_listing(principal, listing_id)

        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise BadRequestException(
                "These fields cannot be changed",
                details={"fields": unknown},
            )
        if "name" in changes and not changes["name"]:
            raise BadRequestException("Listing name is required", details={"field": "name"})

        for key, value in changes.items():
            setattr(listing, key, value)
        self.session.commit()
        return listing

    def list_cities(self) -> List[City]:
        return list(self.session.execute(select(City).order_by(City.name)).scalars())

    def service_area_ids(self, listing_id: UUID) -> List[UUID]:
        stmt = select(ServiceArea.city_id).where(ServiceArea.listing_id == listing_id)
        return list(self.session.execute(stmt).scalars())

    def set_service_areas(
        self,
        principal: Optional[Principal],
        listing_id: UUID,
        city_ids: Iterable[UUID],
    ) -> List[UUID]:
        """Replace the listing's service areas with `city_ids`."""
        listing = self._owned_listing(principal, listing_id)

        wanted = list(dict.fromkeys(city_ids))
        if wanted:
            known = set(self.session.execute(select(City.id).where(City.id.in_(wanted))).scalars())
            missing = [str(c) for c in wanted if c not in known]
            if missing:
                raise BadRequestException("Unknown cities", details={"city_ids": missing})

        try:
            self.session.execute(delete(ServiceArea).where(ServiceArea.listing_id == listing.id))
            for city_id in wanted:
                self.session.add(ServiceArea(listing_id=listing.id, city_id=city_id))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return wanted

    # ===== Saved listings =====

    def save(self, principal: Optional[Principal], listing_id: UUID, note: Optional[str] = None) -> SavedListing:
        """Bookmark a listing. Saving twice returns the existing bookmark."""
        principal = self._require_consumer(principal)
        self.get_listing(listing_id)

        existing = self.session.execute(
            select(SavedListing).where(
                SavedListing.consumer_id == principal.user_id,
                SavedListing.listing_id == listing_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            if note is not None and note != existing.note:
                existing.note = note
                self.session.commit()
            return existing

        saved = SavedListing(consumer_id=principal.user_id, listing_id=listing_id, note=note)
        self.session.add(saved)
        self.session.commit()
        return saved

    def unsave(self, principal: Optional[Principal], listing_id: UUID) -> None:
        principal = self._require_consumer(principal)
        self.session.execute(
            delete(SavedListing).where(
                SavedListing.consumer_id == principal.user_id,
                SavedListing.listing_id == listing_id,
            )
        )
        self.session.commit()

    def list_saved(self, principal: Optional[Principal]) -> List[Tuple[SavedListing, Listing]]:
        """Bookmarks with their listings, most recently saved first."""
        principal = self._require_consumer(principal)
        stmt = (
            select(SavedListing, Listing)
            .join(Listing, Listing.id == SavedListing.listing_id)
            .where(SavedListing.consumer_id == principal.user_id)
            .order_by(SavedListing.saved_at.desc())
        )
        return [(saved, listing) for saved, listing in self.session.execute(stmt).all()]
