"""
Admin routes.

- GET /admin/listings: every listing with its owner's email
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from vendorhub.api.dependencies import get_current_principal
from vendorhub.api.routes.listings import ListingResponse, get_listing_service, to_listing_response
from vendorhub.lib.jwt import Principal
from vendorhub.models.listings import ListingCategory, SubscriptionPlan
from vendorhub.services.listing_service import ListingService


class AdminListingResponse(BaseModel):
    listing: ListingResponse
    owner_email: Optional[str] = None


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/listings", response_model=List[AdminListingResponse])
def list_all_listings(
    q: Optional[str] = Query(None, description="Matches listing name or owner email"),
    category: Optional[ListingCategory] = Query(None),
    plan: Optional[SubscriptionPlan] = Query(None, description="Stored subscription plan"),
    principal: Principal = Depends(get_current_principal),
    service: ListingService = Depends(get_listing_service),
) -> List[AdminListingResponse]:
    """
    Listing directory for administrators, ordered by name.

    Raises:
        401: Not signed in
        403: Caller is not an administrator
    """
    rows = service.admin_directory(principal, term=q, category=category, plan=plan)
    return [
        AdminListingResponse(listing=to_listing_response(listing), owner_email=email)
        for listing, email in rows
    ]
