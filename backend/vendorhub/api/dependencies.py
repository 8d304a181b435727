"""
API dependencies for FastAPI dependency injection.

Provides database sessions and the authenticated Principal.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jwt.exceptions import InvalidTokenError
from sqlalchemy.orm import Session

from vendorhub.api.middleware.error_handler import UnauthorizedException
from vendorhub.lib.db import get_db as get_db_session
from vendorhub.lib.jwt import Principal, get_principal_from_token
from vendorhub.services.user_service import UserService


# Re-export get_db for convenience
get_db = get_db_session


# Missing credentials are reported through UnauthorizedException, not FastAPI's 403
security = HTTPBearer(auto_error=False)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Principal:
    """
    Dependency to resolve the caller from the identity provider token.

    The local user row is created or refreshed so the caller can own
    listings, threads and reviews.

    Raises:
        UnauthorizedException: 401 if the token is missing or invalid
    """
    if credentials is None:
        raise UnauthorizedException("Please sign in to continue")

    try:
        principal = get_principal_from_token(credentials.credentials)
    except InvalidTokenError as e:
        raise UnauthorizedException(f"Could not validate credentials: {e}")

    UserService(db).sync_principal(principal)
    return principal


def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    """
    Dependency to get the caller if authenticated, None otherwise.

    Useful for endpoints that work with or without authentication.
    """
    if credentials is None:
        return None

    try:
        return get_current_principal(credentials, db)
    except UnauthorizedException:
        return None
