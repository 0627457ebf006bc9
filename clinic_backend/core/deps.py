"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from clinic_backend.core.errors import AccountInactive, AuthError, AuthorizationError
from clinic_backend.db.session import SessionLocal
from clinic_backend.models.access_token import AccessToken
from clinic_backend.models.user import User
from clinic_backend.services.token_service import resolve_token

# auto_error=False so a missing header is reported as 401 by get_current_session
security = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_admin(user: User) -> bool:
    """The authorization predicate for every admin-only operation"""
    return user.is_admin


def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> AccessToken:
    """
    Resolve the bearer token of the request to its session row

    Raises 401 for a missing, invalid or revoked token and 403 for an inactive account.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authenticated")

    user, session = resolve_token(db, credentials.credentials)

    if not user.is_active:
        raise AccountInactive("Inactive user")

    return session


def get_current_user(session: AccessToken = Depends(get_current_session)) -> User:
    """Get current authenticated user from the bearer token"""
    return session.user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """
    Dependency for admin-only endpoints

    Usage:
        @router.get("/admin-only")
        async def endpoint(admin: User = Depends(require_admin)):
            ...
    """
    if not is_admin(current_user):
        raise AuthorizationError("Unauthorized. Admin role required.")
    return current_user
