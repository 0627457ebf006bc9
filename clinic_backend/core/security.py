"""
Security utilities for authentication and authorization
"""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import argon2
import bcrypt
from jose import JWTError, jwt
from passlib.context import CryptContext

from clinic_backend.core.config import settings
from clinic_backend.core.constants import MFA_CODE_LENGTH, PASSWORD_MIN_LENGTH, PASSWORD_MAX_BYTES

logger = logging.getLogger(__name__)

# New hashes are argon2. Accounts migrated from the previous system carry bcrypt
# hashes, so verification dispatches on the stored scheme.
_argon2_hasher = argon2.PasswordHasher()

# Used only to recognise which scheme a stored hash belongs to; identify() does
# not load any passlib backend.
_scheme_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password with argon2 (salted, irreversible)"""
    return _argon2_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its stored argon2 or bcrypt hash"""
    if not hashed_password:
        return False

    scheme = _scheme_context.identify(hashed_password)
    if scheme == "argon2":
        try:
            return _argon2_hasher.verify(hashed_password, plain_password)
        except argon2.exceptions.VerificationError:
            return False
        except argon2.exceptions.InvalidHashError:
            logger.warning("Stored argon2 hash is malformed")
            return False

    if scheme == "bcrypt":
        password_bytes = plain_password.encode("utf-8")
        if len(password_bytes) > PASSWORD_MAX_BYTES:
            return False
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
        except ValueError:
            logger.warning("Stored bcrypt hash is malformed")
            return False

    logger.warning("Unrecognised password hash scheme")
    return False


def validate_password(password: Optional[str], confirmation: Optional[str] = None) -> str:
    """
    Validate a new password

    Args:
        password: Raw password string
        confirmation: Value of the confirmation field, when the form has one

    Returns:
        The password, unchanged

    Raises:
        ValueError: If password is invalid with specific error message
    """
    if password is None or not password.strip():
        raise ValueError("Password is required")

    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")

    # Keep parity with the bcrypt limit so a password is valid under either scheme
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password cannot be longer than {PASSWORD_MAX_BYTES} bytes when encoded as UTF-8")

    if confirmation is not None and not hmac.compare_digest(
        password.encode("utf-8"), confirmation.encode("utf-8")
    ):
        raise ValueError("Password confirmation does not match")

    return password


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively; store and compare them lower-cased"""
    return email.strip().lower()


def generate_numeric_code(length: int = MFA_CODE_LENGTH) -> str:
    """Uniformly random decimal code, zero-padded to `length` digits"""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def hash_code(code: str) -> str:
    """
    Keyed hash for one-time codes

    A six-digit space is too small for a plain digest, so codes are HMAC'd with
    the application secret.
    """
    return hmac.new(
        settings.JWT_SECRET_KEY.encode("utf-8"),
        code.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_code(code: str, code_hash: str) -> bool:
    return hmac.compare_digest(hash_code(code), code_hash)


def generate_token(nbytes: int = 32) -> str:
    """URL-safe random token with `nbytes` bytes of entropy"""
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    """Digest used to store high-entropy tokens at rest"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_access_token(data: Dict, expires_minutes: Optional[int] = None) -> str:
    """Create a signed JWT access token"""
    to_encode = data.copy()

    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRE_MINUTES

    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + timedelta(minutes=expires_minutes)})

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Dict:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise ValueError("Invalid token")
