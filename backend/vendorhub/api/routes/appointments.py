"""
Appointment routes.

- GET /appointments: caller's calendar, earliest first
- POST /appointments: consumer requests a slot with a listing's owner
- POST /appointments/{id}/status: supplier confirms or cancels
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from vendorhub.api.dependencies import get_current_principal, get_db
from vendorhub.lib.jwt import Principal
from vendorhub.models.appointments import AppointmentStatus
from vendorhub.services.appointment_service import AppointmentService


# Pydantic schemas
class AppointmentResponse(BaseModel):
    id: UUID
    supplier_id: UUID
    consumer_id: UUID
    listing_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class AppointmentRequest(BaseModel):
    listing_id: UUID
    title: str = Field(..., min_length=1, max_length=200, examples=["Venue walkthrough"])
    description: Optional[str] = Field(None, max_length=2000)
    start_time: datetime
    end_time: datetime


class AppointmentStatusRequest(BaseModel):
    status: AppointmentStatus = Field(..., examples=["confirmed"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Get AppointmentService instance with database session."""
    return AppointmentService(db)


router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=List[AppointmentResponse])
def list_appointments(
    status: Optional[AppointmentStatus] = Query(None, description="Only appointments in this status"),
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
) -> List[AppointmentResponse]:
    return [AppointmentResponse.model_validate(a) for a in service.list_appointments(principal, status)]


@router.post("", response_model=AppointmentResponse, status_code=201)
def request_appointment(
    request: AppointmentRequest,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """
    Ask a listing's owner for a time slot.

    Raises:
        400: Empty title, or the slot ends before it starts
        403: Caller is not a consumer
        404: Unknown listing
    """
    appointment = service.request_appointment(
        principal,
        request.listing_id,
        request.title,
        request.start_time,
        request.end_time,
        request.description,
    )
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/status", response_model=AppointmentResponse)
def set_appointment_status(
    appointment_id: UUID,
    request: AppointmentStatusRequest,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """
    Confirm or cancel a pending appointment.

    Raises:
        403: Caller is not the appointment's supplier
        409: Appointment was already confirmed or cancelled
    """
    appointment = service.set_status(principal, appointment_id, request.status)
    return AppointmentResponse.model_validate(appointment)
