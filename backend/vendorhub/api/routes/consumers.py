"""
Consumer profile routes.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, Field

from vendorhub.api.dependencies import get_current_principal, get_db
from vendorhub.lib.jwt import Principal
from vendorhub.services.profile_service import ProfileService


class ProfileResponse(BaseModel):
    id: UUID
    user_id: UUID
    primary_name: str
    partner_name: Optional[str] = None
    location: str
    target_date: Optional[date] = None
    budget: Optional[Decimal] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileCreateRequest(BaseModel):
    primary_name: str = Field(..., min_length=1, max_length=255)
    partner_name: Optional[str] = Field(None, max_length=255)
    location: str = Field("", max_length=255)
    target_date: Optional[date] = Field(None, description="Wedding or rental date")
    budget: Optional[Decimal] = Field(None, ge=0)


class ProfileUpdateRequest(BaseModel):
    primary_name: Optional[str] = Field(None, min_length=1, max_length=255)
    partner_name: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    target_date: Optional[date] = None
    budget: Optional[Decimal] = Field(None, ge=0)

    model_config = ConfigDict(extra="forbid")


def get_profile_service(db: Session = Depends(get_db)) -> ProfileService:
    return ProfileService(db)


router = APIRouter(prefix="/consumers", tags=["consumers"])


@router.post("/profile", response_model=ProfileResponse, status_code=201)
def create_profile(
    request: ProfileCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    """Create the caller's consumer profile (409 if one exists)."""
    return ProfileResponse.model_validate(service.create_profile(principal, request.model_dump()))


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    principal: Principal = Depends(get_current_principal),
    service: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    return ProfileResponse.model_validate(service.get_profile(principal))


@router.patch("/profile", response_model=ProfileResponse)
def update_profile(
    request: ProfileUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    changes = request.model_dump(exclude_unset=True)
    return ProfileResponse.model_validate(service.update_profile(principal, changes))
