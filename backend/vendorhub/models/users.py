"""
User model - mirror of the identity provider's user record.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import String, DateTime, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.lib.db import Base


class UserRole(str, enum.Enum):
    """Marketplace role carried in the identity token."""
    CONSUMER = "consumer"
    SUPPLIER = "supplier"
    ADMIN = "admin"


class User(Base):
    """
    User entity - one row per authenticated account.
    Suppliers own listings; consumers own a profile, threads, reviews and saved listings.
    """
    __tablename__ = "users"

    # Primary key (same id the identity provider issues in the 'sub' claim)
    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
