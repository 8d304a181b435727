"""
Processed webhook event log - lets the billing bridge skip redelivered events.
"""
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class ProcessedWebhookEvent(Base):
    """One row per payment processor event id that has been applied."""
    __tablename__ = "processed_webhook_events"

    # Processor event id, e.g. evt_1Nx...
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<ProcessedWebhookEvent(id={self.id}, type={self.event_type})>"
