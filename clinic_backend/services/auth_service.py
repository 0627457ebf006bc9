"""
Login flow - password check, one-time code step, token issuance
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from clinic_backend.core.config import settings
from clinic_backend.core.errors import AccountInactive, InvalidCode, NotFoundError, PhoneRequired
from clinic_backend.models.access_token import AccessToken
from clinic_backend.models.user import User
from clinic_backend.services import credential_service, mfa_service, token_service
from clinic_backend.services.audit_service import log_audit
from clinic_backend.services.sms_service import SmsSender

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user: User
    # Set only for accounts exempt from the code step
    token: Optional[str] = None

    @property
    def mfa_required(self) -> bool:
        return self.token is None


def is_mfa_exempt(user: User) -> bool:
    return user.email in settings.get_mfa_exempt_emails()


def start_login(db: Session, sms: SmsSender, email: str, password: str) -> LoginResult:
    """
    First login step

    Exempt accounts get a token straight away. Everyone else gets a code by
    SMS; delivery is mandatory, so a gateway failure propagates as
    NotificationError (the issued code stays stored and simply expires).

    Raises:
        InvalidCredentials, AccountInactive: From the password check
        PhoneRequired: No phone on file to send the code to
        NotificationError: The SMS gateway failed
    """
    user = credential_service.authenticate(db, email, password)

    if is_mfa_exempt(user):
        token = token_service.issue_token(db, user)
        log_audit(
            db,
            actor_id=user.id,
            action="AUTH_LOGIN_SUCCESS",
            entity_type="auth",
            meta={"email": user.email, "mfa_exempt": True},
        )
        return LoginResult(user=user, token=token)

    if not user.phone:
        raise PhoneRequired()

    code = mfa_service.issue_code(db, user)
    sms.send(
        user.phone,
        f"Your verification code is {code}. It expires in {settings.MFA_CODE_TTL_MINUTES} minutes.",
    )
    log_audit(db, actor_id=user.id, action="AUTH_MFA_CODE_SENT", entity_type="auth")
    return LoginResult(user=user)


def complete_login(db: Session, user_id: str, code: str) -> LoginResult:
    """
    Second login step: verify the code and mint a token

    Raises:
        NotFoundError: Unknown user id
        AccountInactive: Account was deactivated after the first step
        InvalidCode: See mfa_service.verify_submitted_code
    """
    user = credential_service.get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")

    if not user.is_active:
        raise AccountInactive()

    try:
        mfa_service.verify_submitted_code(db, user.id, code)
    except InvalidCode:
        log_audit(db, actor_id=user.id, action="AUTH_MFA_FAILED", entity_type="auth")
        raise

    token = token_service.issue_token(db, user)
    log_audit(
        db,
        actor_id=user.id,
        action="AUTH_LOGIN_SUCCESS",
        entity_type="auth",
        meta={"email": user.email, "mfa_exempt": False},
    )
    return LoginResult(user=user, token=token)


def logout(db: Session, session: AccessToken) -> None:
    user_id = session.user_id
    token_service.revoke_token(db, session)
    log_audit(db, actor_id=user_id, action="AUTH_LOGOUT", entity_type="auth")
