"""
Saved listing (favourites) routes.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from vendorhub.api.dependencies import get_current_principal, get_db
from vendorhub.api.routes.listings import ListingResponse, to_listing_response
from vendorhub.lib.jwt import Principal
from vendorhub.services.listing_service import ListingService


class SaveListingRequest(BaseModel):
    listing_id: UUID
    note: Optional[str] = Field(None, max_length=1000)


class SavedListingResponse(BaseModel):
    id: UUID
    listing_id: UUID
    note: Optional[str] = None
    saved_at: datetime

    model_config = {"from_attributes": True}


class SavedListingDetailResponse(SavedListingResponse):
    listing: ListingResponse


router = APIRouter(prefix="/saved", tags=["saved"])


@router.get("", response_model=List[SavedListingDetailResponse])
def list_saved(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> List[SavedListingDetailResponse]:
    return [
        SavedListingDetailResponse(
            id=saved.id,
            listing_id=saved.listing_id,
            note=saved.note,
            saved_at=saved.saved_at,
            listing=to_listing_response(listing),
        )
        for saved, listing in ListingService(db).list_saved(principal)
    ]


@router.post("", response_model=SavedListingResponse, status_code=201)
def save_listing(
    request: SaveListingRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> SavedListingResponse:
    """Save a listing; saving it again returns the existing bookmark."""
    saved = ListingService(db).save(principal, request.listing_id, request.note)
    return SavedListingResponse.model_validate(saved)


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
def unsave_listing(
    listing_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> Response:
    ListingService(db).unsave(principal, listing_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
