"""Consumer profile service (couples and renters)."""
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from vendorhub.api.middleware.error_handler import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
)
from vendorhub.lib.jwt import Principal
from vendorhub.models.consumers import ConsumerProfile

PROFILE_FIELDS = frozenset({"primary_name", "partner_name", "location", "target_date", "budget"})


class ProfileService:
    """One profile per consumer account."""

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _require_consumer(principal: Optional[Principal]) -> Principal:
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")
        if not principal.is_consumer:
            raise ForbiddenException("Only consumers have a consumer profile")
        return principal

    def _find(self, principal: Principal) -> Optional[ConsumerProfile]:
        return self.session.execute(
            select(ConsumerProfile).where(ConsumerProfile.user_id == principal.user_id)
        ).scalar_one_or_none()

    def get_profile(self, principal: Optional[Principal]) -> ConsumerProfile:
        principal = self._require_consumer(principal)
        profile = self._find(principal)
        if profile is None:
            raise NotFoundException("Consumer profile")
        return profile

    def create_profile(self, principal: Optional[Principal], data: Dict[str, Any]) -> ConsumerProfile:
        principal = self._require_consumer(principal)
        if self._find(principal) is not None:
            raise ConflictException("A profile already exists for this account")

        values = {k: v for k, v in data.items() if k in PROFILE_FIELDS}
        if not values.get("primary_name"):
            raise BadRequestException("Name is required", details={"field": "primary_name"})

        profile = ConsumerProfile(user_id=principal.user_id, **values)
        self.session.add(profile)
        self.session.commit()
        return profile

    def update_profile(self, principal: Optional[Principal], changes: Dict[str, Any]) -> ConsumerProfile:
        profile = self.get_profile(principal)

        unknown = sorted(set(changes) - PROFILE_FIELDS)
        if unknown:
            raise BadRequestException("These fields cannot be changed", details={"fields": unknown})
        if "primary_name" in changes and not changes["primary_name"]:
            raise BadRequestException("Name is required", details={"field": "primary_name"})

        for key, value in changes.items():
            setattr(profile, key, value)
        self.session.commit()
        return profile
