"""JWT verification for identity provider tokens.

The hosted auth service signs bearer tokens with a shared secret. Tokens carry
the user id in the standard 'sub' claim and the marketplace role in a 'role'
claim (or in 'user_metadata.role', which is where the hosted service puts
sign-up metadata). Sign-up roles (couple, renter, vendor, owner) map onto the
marketplace roles through ROLE_CLAIMS. Token creation is kept for local
development and tests.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import jwt
from jwt.exceptions import InvalidTokenError

from vendorhub.lib.settings import settings
from vendorhub.models.users import UserRole

# Sign-up roles written by the web clients, plus the canonical role names
ROLE_CLAIMS = {
    "couple": UserRole.CONSUMER,
    "renter": UserRole.CONSUMER,
    "vendor": UserRole.SUPPLIER,
    "owner": UserRole.SUPPLIER,
    "consumer": UserRole.CONSUMER,
    "supplier": UserRole.SUPPLIER,
    "admin": UserRole.ADMIN,
}


@dataclass(frozen=True)
class Principal:
    """Authenticated caller passed explicitly into every core operation."""

    user_id: UUID
    role: UserRole
    email: Optional[str] = None

    @property
    def is_supplier(self) -> bool:
        return self.role == UserRole.SUPPLIER

    @property
    def is_consumer(self) -> bool:
        return self.role == UserRole.CONSUMER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def create_access_token(
    user_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
    email: Optional[str] = None,
) -> str:
    """Create a signed access token shaped like the identity provider's.

    Args:
        user_id: UUID of the user (stored in 'sub' claim)
        role: Marketplace role (consumer, supplier, admin)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expiration_minutes)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + expires_delta,
    }
    if email:
        payload["email"] = email
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience

    return jwt.encode(
        payload,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Raises:
        InvalidTokenError: If token is invalid, expired, or signature doesn't match
    """
    options = {} if settings.jwt_audience else {"verify_aud": False}
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience or None,
        options=options,
    )


def get_principal_from_token(token: str) -> Principal:
    """Resolve a bearer token to a Principal.

    Raises:
        InvalidTokenError: If the token is invalid or lacks a usable subject/role
    """
    payload = verify_token(token)

    subject = payload.get("sub")
    role = (payload.get("user_metadata") or {}).get("role") or payload.get("role")
    if not subject or not role:
        raise InvalidTokenError("Token is missing subject or role claim")

    principal_role = ROLE_CLAIMS.get(str(role).lower())
    if principal_role is None:
        raise InvalidTokenError(f"Unrecognised role claim: '{role}'")

    try:
        user_id = UUID(str(subject))
    except ValueError as e:
        raise InvalidTokenError(f"Unrecognised subject claim: {e}") from e

    return Principal(user_id=user_id, role=principal_role, email=payload.get("email"))
