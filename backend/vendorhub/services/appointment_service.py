"""Supplier calendar.

Consumers request appointments against a listing; the listing owner confirms
or cancels each pending request. Confirmed and cancelled are final.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from vendorhub.api.middleware.error_handler import (
    BadRequestException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
)
from vendorhub.lib.jwt import Principal
from vendorhub.lib.logging import get_logger
from vendorhub.lib.metrics import MetricsCollector, get_metrics_collector
from vendorhub.lib.timeutils import as_utc
from vendorhub.models.appointments import Appointment, AppointmentStatus
from vendorhub.models.listings import Listing

logger = get_logger(__name__)

SUPPLIER_DECISIONS = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED})


class AppointmentService:
    """Appointment requests and the supplier's calendar."""

    def __init__(self, session: Session, metrics: Optional[MetricsCollector] = None):
        self.session = session
        self.metrics = metrics or get_metrics_collector()

    @staticmethod
    def _require_principal(principal: Optional[Principal]) -> Principal:
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")
        return principal

    def request_appointment(
        self,
        principal: Optional[Principal],
        listing_id: UUID,
        title: str,
        start_time: datetime,
        end_time: datetime,
        description: Optional[str] = None,
    ) -> Appointment:
        """Consumer asks a listing's owner for a time slot. Starts as pending."""
        principal = self._require_principal(principal)
        if not principal.is_consumer:
            raise ForbiddenException("Only consumers can request appointments")

        title = (title or "").strip()
        if not title:
            raise BadRequestException("Appointment title is required", details={"field": "title"})
        if as_utc(end_time) <= as_utc(start_time):
            raise BadRequestException(
                "Appointment must end after it starts",
                details={"field": "end_time"},
            )

        listing = self.session.get(Listing, listing_id)
        if listing is None:
            raise NotFoundException("Listing", str(listing_id))

        appointment = Appointment(
            supplier_id=listing.owner_id,
            consumer_id=principal.user_id,
            listing_id=listing.id,
            title=title,
            description=(description or "").strip() or None,
            start_time=start_time,
            end_time=end_time,
            status=AppointmentStatus.PENDING,
        )
        self.session.add(appointment)
        self.session.commit()

        self.metrics.increment_appointments(AppointmentStatus.PENDING.value)
        logger.info(
            "Appointment requested",
            extra={"appointment_id": str(appointment.id), "listing_id": str(listing.id)},
        )
        return appointment

    def list_appointments(
        self,
        principal: Optional[Principal],
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        """Appointments the caller is a party to, earliest start first."""
        principal = self._require_principal(principal)
        stmt = select(Appointment).where(
            or_(Appointment.supplier_id == principal.user_id, Appointment.consumer_id == principal.user_id)
        )
        if status is not None:
            stmt = stmt.where(Appointment.status == status)
        stmt = stmt.order_by(Appointment.start_time.asc(), Appointment.id)
        return list(self.session.execute(stmt).scalars())

    def set_status(
        self,
        principal: Optional[Principal],
        appointment_id: UUID,
        target: AppointmentStatus,
    ) -> Appointment:
        """Supplier confirms or cancels a pending appointment.

        Raises:
            ForbiddenException: caller is not the appointment's supplier
            InvalidTransitionException: appointment is no longer pending, or
                the target is not confirmed/cancelled
        """
        principal = self._require_principal(principal)
        target = AppointmentStatus(target)

        try:
            appointment = self.session.execute(
                select(Appointment).where(Appointment.id == appointment_id).with_for_update()
            ).scalar_one_or_none()
            if appointment is None:
                raise NotFoundException("Appointment", str(appointment_id))
            if appointment.supplier_id != principal.user_id:
                raise ForbiddenException("Only the supplier can confirm or cancel this appointment")

            current = appointment.status
            if current != AppointmentStatus.PENDING or target not in SUPPLIER_DECISIONS:
                raise InvalidTransitionException(current.value, target.value, subject="appointment")

            appointment.status = target
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.metrics.increment_appointments(target.value)
        logger.info(
            f"Appointment {target.value}",
            extra={"appointment_id": str(appointment.id), "supplier_id": str(principal.user_id)},
        )
        return appointment
