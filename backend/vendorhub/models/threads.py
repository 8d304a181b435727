"""
Thread and Message models - lead conversations between a supplier and a consumer.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Uuid,
    UniqueConstraint,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class ThreadStatus(str, enum.Enum):
    """Lead status state machine: pending → accepted/declined → closed."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CLOSED = "closed"


class Thread(Base):
    """
    Thread entity - one per (supplier, consumer) pair.
    The lead status lives here only; messages read it through their thread.
    """
    __tablename__ = "threads"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    # Parties
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
        comment="Listing the consumer first contacted the supplier from",
    )

    status: Mapped[ThreadStatus] = mapped_column(
        SQLEnum(ThreadStatus, name="thread_status"),
        nullable=False,
        default=ThreadStatus.PENDING,
        index=True,
    )

    # Inbox summary, maintained on every append
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    last_message_preview: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

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
        UniqueConstraint("supplier_id", "consumer_id", name="uq_thread_parties"),
        CheckConstraint("supplier_id <> consumer_id", name="thread_distinct_parties"),
    )

    def __repr__(self) -> str:
        return f"<Thread(id={self.id}, status={self.status}, supplier_id={self.supplier_id}, consumer_id={self.consumer_id})>"


class Message(Base):
    """
    Message entity - append-only; never updated or deleted.
    """
    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    thread_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    receiver_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    content: Mapped[str] = mapped_column(String(4000), nullable=False)
    is_automated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="True for status notices appended by a transition",
    )

    # 1-based position within the thread
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("thread_id", "sequence", name="uq_message_thread_sequence"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, thread_id={self.thread_id}, sequence={self.sequence})>"
