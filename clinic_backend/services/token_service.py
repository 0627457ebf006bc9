"""
Bearer session tokens

The client receives a signed JWT whose jti is a 256-bit random value. Only
sha256(jti) is stored, one AccessToken row per session; deleting the row
revokes the token even though its signature and exp are still valid.
"""
import logging
from typing import Tuple

from sqlalchemy.orm import Session

from clinic_backend.core.errors import AuthError
from clinic_backend.core.security import create_access_token, decode_token, generate_token, hash_token
from clinic_backend.models.access_token import AccessToken
from clinic_backend.models.user import User
from clinic_backend.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def issue_token(db: Session, user: User) -> str:
    """Mint a new bearer token bound to `user`. The token is returned only here."""
    jti = generate_token(32)
    db.add(AccessToken(user_id=user.id, token_hash=hash_token(jti)))
    db.commit()
    return create_access_token({"sub": user.id, "role": user.role, "jti": jti})


def resolve_token(db: Session, token: str) -> Tuple[User, AccessToken]:
    """
    Map a presented bearer token to its session and user

    Raises:
        AuthError: Bad signature, expired, malformed, or revoked token
    """
    try:
        payload = decode_token(token)
    except ValueError:
        raise AuthError("Invalid authentication credentials")

    jti = payload.get("jti")
    sub = payload.get("sub")
    if not jti or not sub:
        raise AuthError("Invalid authentication credentials")

    session = db.query(AccessToken).filter(AccessToken.token_hash == hash_token(jti)).first()
    if session is None or session.user_id != sub:
        raise AuthError("Invalid authentication credentials")

    session.last_used_at = now_utc()
    db.commit()
    return session.user, session


def revoke_token(db: Session, session: AccessToken) -> None:
    """Delete the session row; the token stops working immediately"""
    db.delete(session)
    db.commit()
    logger.info("Session %s of user %s revoked", session.id, session.user_id)
