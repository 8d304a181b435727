"""
Review routes: listing reviews, the derived rating, and owner responses.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from vendorhub.api.dependencies import get_current_principal, get_db
from vendorhub.lib.jwt import Principal
from vendorhub.services.review_service import ReviewService


# Pydantic schemas
class ReviewResponse(BaseModel):
    id: UUID
    listing_id: UUID
    consumer_id: UUID
    rating: int
    content: str
    response: Optional[str] = None
    response_date: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReviewRequest(BaseModel):
    """Create or edit a review. Range is checked by the service (422)."""
    rating: int = Field(..., examples=[5])
    content: str = Field("", max_length=4000)


class ReviewReplyRequest(BaseModel):
    response: str = Field(..., max_length=4000)


class RatingResponse(BaseModel):
    listing_id: UUID
    average_rating: float = Field(..., description="0 when the listing has no reviews")
    review_count: int


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    """Get ReviewService instance with database session."""
    return ReviewService(db)


router = APIRouter(tags=["reviews"])


@router.get("/listings/{listing_id}/reviews", response_model=List[ReviewResponse])
def list_reviews(
    listing_id: UUID,
    service: ReviewService = Depends(get_review_service),
) -> List[ReviewResponse]:
    """Reviews of a listing, newest first."""
    return [ReviewResponse.model_validate(r) for r in service.list_reviews(listing_id)]


@router.post("/listings/{listing_id}/reviews", response_model=ReviewResponse, status_code=201)
def add_review(
    listing_id: UUID,
    request: ReviewRequest,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Review a listing.

    Raises:
        409: The consumer already reviewed this listing
        422: Rating outside 1-5
    """
    review = service.add_review(principal, listing_id, request.rating, request.content)
    return ReviewResponse.model_validate(review)


@router.get("/listings/{listing_id}/rating", response_model=RatingResponse)
def get_rating(
    listing_id: UUID,
    service: ReviewService = Depends(get_review_service),
) -> RatingResponse:
    reviews = service.list_reviews(listing_id)
    return RatingResponse(
        listing_id=listing_id,
        average_rating=service.average_rating(listing_id),
        review_count=len(reviews),
    )


@router.get("/reviews/mine", response_model=List[ReviewResponse])
def list_my_listing_reviews(
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
) -> List[ReviewResponse]:
    """Reviews across the caller's own listings (supplier dashboard)."""
    return [ReviewResponse.model_validate(r) for r in service.list_reviews_for_owner(principal)]


@router.patch("/reviews/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: UUID,
    request: ReviewRequest,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    review = service.update_review(principal, review_id, request.rating, request.content)
    return ReviewResponse.model_validate(review)


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
) -> Response:
    service.delete_review(principal, review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reviews/{review_id}/response", response_model=ReviewResponse)
def respond_to_review(
    review_id: UUID,
    request: ReviewReplyRequest,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Attach the listing owner's response.

    Raises:
        403: Caller does not own the listing
        409: The review already has a response
    """
    review = service.respond(principal, review_id, request.response)
    return ReviewResponse.model_validate(review)
