"""User mirror service.

The identity provider owns accounts; this service keeps a local `users` row
for every principal that reaches the API so listings, threads and reviews can
reference it.
"""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendorhub.lib.jwt import Principal
from vendorhub.lib.logging import get_logger
from vendorhub.models.users import User

logger = get_logger(__name__)


class UserService:
    """Get-or-create for users seen in identity tokens."""

    def __init__(self, session: Session):
        """Initialize user service with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def sync_principal(self, principal: Principal) -> User:
        """Return the local user row for a principal, creating it on first sight.

        Role and email follow the token: the identity provider is the source
        of truth for both.

        Args:
            principal: Authenticated caller

        Returns:
            User object
        """
        user = self.session.get(User, principal.user_id)

        if user:
            changed = False
            if user.role != principal.role:
                user.role = principal.role
                changed = True
            if principal.email and user.email != principal.email:
                user.email = principal.email
                changed = True
            if changed:
                self.session.commit()
            return user

        user = User(
            id=principal.user_id,
            email=principal.email,
            role=principal.role,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            # Another request created the row first
            self.session.rollback()
            user = self.session.execute(
                select(User).where(User.id == principal.user_id)
            ).scalar_one()
            return user

        logger.info(
            "Registered user from identity token",
            extra={"user_id": str(principal.user_id), "role": principal.role.value},
        )
        return user
