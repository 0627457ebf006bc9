"""
One-time login codes

A code moves Issued -> Verified on a correct submission, and is dead once
past expires_at. With MFA_MAX_ATTEMPTS set it is also dead after that many
wrong submissions. Issuing a new code never touches older ones; verification
always works against the most recently created live code.
"""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from clinic_backend.core.config import settings
from clinic_backend.core.errors import InvalidCode
from clinic_backend.core.security import generate_numeric_code, hash_code, verify_code
from clinic_backend.models.mfa_code import MFACode
from clinic_backend.models.user import User
from clinic_backend.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def issue_code(db: Session, user: User) -> str:
    """
    Create and persist a new code for `user`

    Returns:
        The plaintext code, for out-of-band delivery. It is not recoverable afterwards.
    """
    code = generate_numeric_code()
    record = MFACode(
        user_id=user.id,
        code_hash=hash_code(code),
        expires_at=now_utc() + timedelta(minutes=settings.MFA_CODE_TTL_MINUTES),
        attempts=0,
        used=False,
    )
    db.add(record)
    db.commit()
    logger.info("Issued login code %s for user %s", record.id, user.id)
    return code


def current_code(db: Session, user_id: str) -> Optional[MFACode]:
    """Most recently created unused, unexpired code of a user"""
    return (
        db.query(MFACode)
        .filter(
            MFACode.user_id == user_id,
            MFACode.used.is_(False),
            MFACode.expires_at > now_utc(),
        )
        .order_by(MFACode.created_at.desc())
        .first()
    )


def _is_exhausted(record: MFACode) -> bool:
    cap = settings.MFA_MAX_ATTEMPTS
    return cap is not None and record.attempts >= cap


def verify_submitted_code(db: Session, user_id: str, submitted_code: str) -> MFACode:
    """
    Check a submitted code and consume it on success

    Raises:
        InvalidCode: No live code, wrong code, exhausted code, or the code was
            consumed by a concurrent request
    """
    record = current_code(db, user_id)
    if record is None:
        raise InvalidCode()

    if _is_exhausted(record):
        logger.warning("Login code %s exhausted after %s attempts", record.id, record.attempts)
        raise InvalidCode()

    if not verify_code(submitted_code, record.code_hash):
        db.query(MFACode).filter(MFACode.id == record.id).update(
            {MFACode.attempts: MFACode.attempts + 1}, synchronize_session=False
        )
        db.commit()
        raise InvalidCode()

    # Conditional update: only one request can flip used from false to true
    consumed = (
        db.query(MFACode)
        .filter(MFACode.id == record.id, MFACode.used.is_(False))
        .update({MFACode.used: True}, synchronize_session=False)
    )
    db.commit()
    if consumed != 1:
        raise InvalidCode()

    db.refresh(record)
    return record
