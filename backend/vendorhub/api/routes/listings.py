"""
Listing directory routes.

Search results come back ordered by subscription tier; plan and end date
are read-only here and change only through billing webhooks.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, Field

from vendorhub.api.dependencies import get_current_principal, get_db
from vendorhub.lib.jwt import Principal
from vendorhub.models.listings import Listing, ListingCategory, SubscriptionPlan
from vendorhub.services.listing_service import ListingFilters, ListingService
from vendorhub.services.ranking import effective_plan


# Pydantic schemas
class ListingResponse(BaseModel):
    """Listing card and detail view."""
    id: UUID
    owner_id: UUID
    name: str
    category: ListingCategory
    description: str
    location: str
    price_range: str
    images: List[str] = Field(default_factory=list)
    website_url: Optional[str] = None
    facebook_url: Optional[str] = None
    instagram_url: Optional[str] = None
    tiktok_url: Optional[str] = None
    youtube_url: Optional[str] = None
    subscription_plan: SubscriptionPlan
    subscription_end_date: Optional[datetime] = None
    effective_plan: SubscriptionPlan = Field(..., description="Plan after applying the end date")
    rating: float
    created_at: datetime

    model_config = {"from_attributes": True}


class ListingCreateRequest(BaseModel):
    """New listing payload."""
    name: str = Field(..., min_length=1, max_length=255)
    category: ListingCategory
    description: str = ""
    location: str = ""
    price_range: str = Field("$", max_length=50, examples=["$$", "45/day"])
    images: List[str] = Field(default_factory=list)
    website_url: Optional[str] = None
    facebook_url: Optional[str] = None
    instagram_url: Optional[str] = None
    tiktok_url: Optional[str] = None
    youtube_url: Optional[str] = None


class ListingUpdateRequest(BaseModel):
    """Listing settings; only supplied fields are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[ListingCategory] = None
    description: Optional[str] = None
    location: Optional[str] = None
    price_range: Optional[str] = Field(None, max_length=50)
    images: Optional[List[str]] = None
    website_url: Optional[str] = None
    facebook_url: Optional[str] = None
    instagram_url: Optional[str] = None
    tiktok_url: Optional[str] = None
    youtube_url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class ServiceAreasRequest(BaseModel):
    city_ids: List[UUID]


class ServiceAreasResponse(BaseModel):
    listing_id: UUID
    city_ids: List[UUID]


class CityResponse(BaseModel):
    id: UUID
    name: str

    model_config = {"from_attributes": True}


def to_listing_response(listing: Listing) -> ListingResponse:
    """Serialize a listing with its effective plan."""
    return ListingResponse(
        id=listing.id,
        owner_id=listing.owner_id,
        name=listing.name,
        category=listing.category,
        description=listing.description or "",
        location=listing.location or "",
        price_range=listing.price_range,
        images=list(listing.images or []),
        website_url=listing.website_url,
        facebook_url=listing.facebook_url,
        instagram_url=listing.instagram_url,
        tiktok_url=listing.tiktok_url,
        youtube_url=listing.youtube_url,
        subscription_plan=listing.subscription_plan,
        subscription_end_date=listing.subscription_end_date,
        effective_plan=effective_plan(listing),
        rating=listing.rating or 0.0,
        created_at=listing.created_at,
    )


def get_listing_service(db: Session = Depends(get_db)) -> ListingService:
    """Get ListingService instance with database session."""
    return ListingService(db)


# Router
router = APIRouter(tags=["listings"])


@router.get("/listings", response_model=List[ListingResponse])
def search_listings(
    q: Optional[str] = Query(None, description="Matches name, description or category"),
    category: Optional[ListingCategory] = Query(None, description="Filter by category"),
    price_range: Optional[str] = Query(None, description="Exact price tier or rate"),
    min_rating: Optional[float] = Query(None, ge=0, le=5, description="Minimum average rating"),
    city_id: Optional[UUID] = Query(None, description="Listings serving this city"),
    location: Optional[str] = Query(None, description="Substring of the listing location"),
    service: ListingService = Depends(get_listing_service),
) -> List[ListingResponse]:
    """
    Search listings.

    Elite listings come first, then featured, essential and unpaid ones;
    within a tier, newest first.
    """
    filters = ListingFilters(
        term=q,
        category=category,
        price_range=price_range,
        min_rating=min_rating,
        city_id=city_id,
        location=location,
    )
    return [to_listing_response(listing) for listing in service.search(filters)]


@router.post("/listings", response_model=ListingResponse, status_code=201)
def create_listing(
    request: ListingCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: ListingService = Depends(get_listing_service),
) -> ListingResponse:
    """Register a listing for the calling supplier."""
    listing = service.create_listing(principal, request.model_dump())
    return to_listing_response(listing)


@router.get("/listings/{listing_id}", response_model=ListingResponse)
def get_listing(
    listing_id: UUID,
    service: ListingService = Depends(get_listing_service),
) -> ListingResponse:
    return to_listing_response(service.get_listing(listing_id))


@router.patch("/listings/{listing_id}", response_model=ListingResponse)
def update_listing(
    listing_id: UUID,
    request: ListingUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: ListingService = Depends(get_listing_service),
) -> ListingResponse:
    """Change listing settings; owner only."""
    listing = service.update_listing(principal, listing_id, request.model_dump(exclude_unset=True))
    return to_listing_response(listing)


@router.put("/listings/{listing_id}/service-areas", response_model=ServiceAreasResponse)
def set_service_areas(
    listing_id: UUID,
    request: ServiceAreasRequest,
    principal: Principal = Depends(get_current_principal),
    service: ListingService = Depends(get_listing_service),
) -> ServiceAreasResponse:
    """Replace the cities a listing serves."""
    city_ids = service.set_service_areas(principal, listing_id, request.city_ids)
    return ServiceAreasResponse(listing_id=listing_id, city_ids=city_ids)


@router.get("/cities", response_model=List[CityResponse])
def list_cities(service: ListingService = Depends(get_listing_service)) -> List[CityResponse]:
    return [CityResponse.model_validate(city) for city in service.list_cities()]
