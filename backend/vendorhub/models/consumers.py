"""
Consumer profile model - couples planning an event or renters looking for items.
"""
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Date, DateTime, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class ConsumerProfile(Base):
    """
    Consumer profile entity (1:1 with User).
    """
    __tablename__ = "consumer_profiles"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Names (partner_name is only used by couples)
    primary_name: Mapped[str] = mapped_column(String(255), nullable=False)
    partner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Planning details
    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    target_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    budget: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<ConsumerProfile(id={self.id}, user_id={self.user_id})>"
