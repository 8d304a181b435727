"""Review aggregation service.

Consumers rate listings 1-5 with free text; the listing owner may attach a
single response to each review. The listing's stored `rating` is refreshed
after every change so search filters and cards can read it directly.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendorhub.api.middleware.error_handler import (
    AlreadyRespondedException,
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidRatingException,
    NotFoundException,
    UnauthorizedException,
)
from vendorhub.lib.jwt import Principal
from vendorhub.lib.logging import get_logger
from vendorhub.lib.metrics import MetricsCollector, get_metrics_collector
from vendorhub.lib.timeutils import utcnow
from vendorhub.models.listings import Listing
from vendorhub.models.reviews import Review

logger = get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5

# Returned by average_rating for listings without reviews
NO_RATING = 0.0


def validate_rating(rating) -> int:
    """Reject anything that is not an integer on the 1-5 scale."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRatingException(rating)
    if rating < MIN_RATING or rating > MAX_RATING:
        raise InvalidRatingException(rating)
    return rating


class ReviewService:
    """Per-listing reviews, supplier responses and the derived average."""

    def __init__(self, session: Session, metrics: Optional[MetricsCollector] = None):
        self.session = session
        self.metrics = metrics or get_metrics_collector()

    def _get_listing(self, listing_id: UUID) -> Listing:
        listing = self.session.get(Listing, listing_id)
        if listing is None:
            raise NotFoundException("Listing", str(listing_id))
        return listing

    def _get_review(self, review_id: UUID) -> Review:
        review = self.session.get(Review, review_id)
        if review is None:
            raise NotFoundException("Review", str(review_id))
        return review

    def _refresh_listing_rating(self, listing_id: UUID) -> None:
        """Recompute the stored average. Caller commits."""
        self.session.flush()
        listing = self._get_listing(listing_id)
        listing.rating = self.average_rating(listing_id)

    # ===== Queries =====

    def average_rating(self, listing_id: UUID) -> float:
        """Arithmetic mean of all ratings, or NO_RATING when there are none."""
        total, count = self.session.execute(
            select(func.sum(Review.rating), func.count(Review.id)).where(Review.listing_id == listing_id)
        ).one()
        if not count:
            return NO_RATING
        return total / count

    def list_reviews(self, listing_id: UUID) -> List[Review]:
        """Reviews of one listing, newest first."""
        self._get_listing(listing_id)
        stmt = (
            select(Review)
            .where(Review.listing_id == listing_id)
            .order_by(Review.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def list_reviews_for_owner(self, principal: Optional[Principal]) -> List[Review]:
        """Reviews across every listing the principal owns, newest first."""
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")
        stmt = (
            select(Review)
            .join(Listing, Listing.id == Review.listing_id)
            .where(Listing.owner_id == principal.user_id)
            .order_by(Review.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    # ===== Commands =====

    def add_review(
        self,
        principal: Optional[Principal],
        listing_id: UUID,
        rating: int,
        content: str,
    ) -> Review:
        """Create a review; one per consumer per listing."""
        rating = validate_rating(rating)
        if principal is None:
            raise UnauthorizedException("Please sign in to leave a review")
        if not principal.is_consumer:
            raise ForbiddenException("Only consumers can review listings")

        listing = self._get_listing(listing_id)

        review = Review(
            listing_id=listing.id,
            consumer_id=principal.user_id,
            rating=rating,
            content=(content or "").strip(),
        )
        self.session.add(review)
        try:
            self._refresh_listing_rating(listing.id)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictException(
                "You have already reviewed this listing",
                details={"listing_id": str(listing_id)},
            )
        except Exception:
            self.session.rollback()
            raise

        self.metrics.increment_reviews()
        logger.info(
            "Review submitted",
            extra={"review_id": str(review.id), "listing_id": str(listing.id), "rating": rating},
        )
        return review

    def respond(self, principal: Optional[Principal], review_id: UUID, text: str) -> Review:
        """Attach the listing owner's response. Write-once."""
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")

        review = self._get_review(review_id)
        listing = self._get_listing(review.listing_id)
        if listing.owner_id != principal.user_id:
            raise ForbiddenException("Only the listing owner can respond to this review")
        if review.response is not None:
            raise AlreadyRespondedException(str(review.id))

        body = (text or "").strip()
        if not body:
            raise BadRequestException("Please enter a response", details={"field": "response"})

        review.response = body
        review.response_date = utcnow()
        self.session.commit()

        logger.info("Review response added", extra={"review_id": str(review.id)})
        return review

    def update_review(
        self,
        principal: Optional[Principal],
        review_id: UUID,
        rating: int,
        content: str,
    ) -> Review:
        """Edit rating and text; author only."""
        rating = validate_rating(rating)
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")

        review = self._get_review(review_id)
        if review.consumer_id != principal.user_id:
            raise ForbiddenException("Only the author can edit this review")

        review.rating = rating
        review.content = (content or "").strip()
        try:
            self._refresh_listing_rating(review.listing_id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return review

    def delete_review(self, principal: Optional[Principal], review_id: UUID) -> None:
        """Remove a review; author only."""
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")

        review = self._get_review(review_id)
        if review.consumer_id != principal.user_id:
            raise ForbiddenException("Only the author can delete this review")

        listing_id = review.listing_id
        self.session.delete(review)
        try:
            self._refresh_listing_rating(listing_id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Review deleted", extra={"review_id": str(review_id), "listing_id": str(listing_id)})
