"""
Appointment model - a consultation or site visit booked with a supplier.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import (
    String,
    Text,
    DateTime,
    ForeignKey,
    Uuid,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class AppointmentStatus(str, enum.Enum):
    """Requested appointments are confirmed or cancelled by the supplier."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Appointment(Base):
    """
    Appointment entity - requested by a consumer against one listing.
    The supplier's calendar is every appointment where they are the supplier.
    """
    __tablename__ = "appointments"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    supplier_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consumer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    listing_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("listings.id", ondelete="SET NULL"),
        nullable=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus, name="appointment_status"),
        nullable=False,
        default=AppointmentStatus.PENDING,
        index=True,
    )

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
        CheckConstraint("end_time > start_time", name="appointment_time_order"),
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, supplier_id={self.supplier_id}, status={self.status})>"
