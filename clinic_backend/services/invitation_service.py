"""
Invitation service - admin invitations and their redemption into staff accounts

An invitation is pending until it is accepted (the holder redeemed the token)
or revoked (by an admin, or superseded after expiry). Both are terminal.
Tokens are stored as sha256 digests; the plaintext leaves the system once, in
the response to the inviting admin.
"""
import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_backend.core.config import settings
from clinic_backend.core.constants import DEFAULT_JOB_TITLE
from clinic_backend.core.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateInvitation,
    InvalidOrExpiredToken,
    NotFoundError,
    ValidationError,
)
from clinic_backend.core.security import generate_token, hash_token, validate_password
from clinic_backend.models.invitation import Invitation, InvitationStatus
from clinic_backend.models.staff_profile import StaffProfile
from clinic_backend.models.user import Role, User
from clinic_backend.schemas.invitation import AcceptInvitationRequest, InvitationCreate
from clinic_backend.services import credential_service
from clinic_backend.services.audit_service import log_audit
from clinic_backend.services.sms_service import SmsSender, send_best_effort
from clinic_backend.utils.datetime_utils import is_past, now_utc
from clinic_backend.utils.enums import enum_to_str
from clinic_backend.utils.validators import validate_phone

logger = logging.getLogger(__name__)


def create_invitation(db: Session, admin: User, data: InvitationCreate) -> Tuple[Invitation, str]:
    """
    Invite a new staff member

    Pending invitations for the same email that have already expired are
    revoked first so the new one can take their place.

    Args:
        db: Database session
        admin: Requesting user; must be an admin
        data: Email, role and the profile fields staged for provisioning

    Returns:
        (invitation, plaintext token)

    Raises:
        AuthorizationError: Requester is not an admin
        ConflictError: A user with this email already exists
        DuplicateInvitation: A live pending invitation exists for this email
    """
    if not admin.is_admin:
        raise AuthorizationError("Unauthorized")

    email = data.email
    if credential_service.get_user_by_email(db, email) is not None:
        raise ConflictError("A user with this email already exists")

    now = now_utc()
    pending = (
        db.query(Invitation)
        .filter(Invitation.email == email, Invitation.status == InvitationStatus.PENDING.value)
        .with_for_update()
        .all()
    )
    for previous in pending:
        if not is_past(previous.expires_at, now):
            raise DuplicateInvitation()
        previous.status = InvitationStatus.REVOKED.value
        logger.info("Expired invitation %s superseded", previous.id)
    db.flush()

    token = generate_token(48)
    invitation = Invitation(
        email=email,
        token_hash=hash_token(token),
        invited_by=admin.id,
        role=enum_to_str(data.role),
        expires_at=now + timedelta(days=settings.INVITATION_TTL_DAYS),
        status=InvitationStatus.PENDING.value,
        first_name=data.first_name,
        last_name=data.last_name,
        job_title=data.job_title or DEFAULT_JOB_TITLE,
        department_unit=data.department,
        start_date=data.start_date or now_utc().date(),
    )
    db.add(invitation)
    try:
        # Partial unique index on pending emails settles concurrent invites
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateInvitation()

    log_audit(
        db,
        actor_id=admin.id,
        action="INVITATION_CREATE",
        entity_type="invitation",
        entity_id=invitation.id,
        meta={"email": email, "role": invitation.role},
        commit=False,
    )
    db.commit()
    db.refresh(invitation)
    logger.info("Invitation %s created by %s", invitation.id, admin.id)
    return invitation, token


def find_redeemable(db: Session, token: str) -> Optional[Invitation]:
    """Pending, unexpired invitation matching a plaintext token"""
    return (
        db.query(Invitation)
        .filter(
            Invitation.token_hash == hash_token(token),
            Invitation.status == InvitationStatus.PENDING.value,
            Invitation.expires_at > now_utc(),
        )
        .first()
    )


def _validate_acceptance(data: AcceptInvitationRequest) -> Tuple[str, str]:
    errors = {}
    password = phone = None
    try:
        password = validate_password(data.password, data.password_confirmation or "")
    except ValueError as e:
        errors["password"] = [str(e)]
    try:
        phone = validate_phone(data.phone)
    except ValueError as e:
        errors["phone"] = [str(e)]
    if errors:
        raise ValidationError(errors=errors)
    return password, phone


def redeem_invitation(
    db: Session,
    token: str,
    data: AcceptInvitationRequest,
    sms: Optional[SmsSender] = None,
) -> User:
    """
    Turn an invitation into an active staff account

    The credential, its staff profile and the pending -> accepted transition
    are committed together or not at all.

    Raises:
        InvalidOrExpiredToken: No pending, unexpired invitation for this token,
            or it was accepted concurrently
        ValidationError: Weak/unconfirmed password or bad phone
        ConflictError: The email was registered since the invitation was sent
    """
    invitation = find_redeemable(db, token)
    if invitation is None:
        raise InvalidOrExpiredToken()

    password, phone = _validate_acceptance(data)

    try:
        user = credential_service.create_user(
            db,
            email=invitation.email,
            password=password,
            role=Role(invitation.role),
            name=invitation.first_name,
            phone=phone,
            department=invitation.department_unit,
        )
        user.staff_profile = StaffProfile(
            first_name=invitation.first_name,
            last_name=invitation.last_name,
            job_title=invitation.job_title,
            department_unit=invitation.department_unit,
            start_date=invitation.start_date,
        )
        db.flush()

        accepted = (
            db.query(Invitation)
            .filter(Invitation.id == invitation.id, Invitation.status == InvitationStatus.PENDING.value)
            .update(
                {
                    Invitation.status: InvitationStatus.ACCEPTED.value,
                    Invitation.accepted_at: now_utc(),
                    Invitation.accepted_user_id: user.id,
                },
                synchronize_session=False,
            )
        )
        if accepted != 1:
            raise InvalidOrExpiredToken()

        log_audit(
            db,
            actor_id=user.id,
            action="INVITATION_ACCEPT",
            entity_type="invitation",
            entity_id=invitation.id,
            meta={"email": user.email, "role": user.role},
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info("Invitation %s accepted, user %s provisioned", invitation.id, user.id)

    if sms is not None:
        send_best_effort(sms, user.phone, "Your clinic staff account is ready. You can now log in.")
    return user


def get_invitation(db: Session, invitation_id: str) -> Invitation:
    invitation = db.query(Invitation).filter(Invitation.id == invitation_id).first()
    if invitation is None:
        raise NotFoundError("Invitation not found")
    return invitation


def list_invitations(
    db: Session,
    status: Optional[InvitationStatus] = None,
    email: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Invitation]:
    query = db.query(Invitation)
    if status is not None:
        query = query.filter(Invitation.status == enum_to_str(status))
    if email:
        query = query.filter(Invitation.email == email.strip().lower())
    return query.order_by(Invitation.created_at.desc()).offset(skip).limit(limit).all()


def revoke_invitation(db: Session, admin: User, invitation_id: str) -> Invitation:
    """
    Administratively revoke a pending invitation

    Raises:
        NotFoundError: Unknown invitation
        ConflictError: Invitation is no longer pending
    """
    invitation = get_invitation(db, invitation_id)

    revoked = (
        db.query(Invitation)
        .filter(Invitation.id == invitation.id, Invitation.status == InvitationStatus.PENDING.value)
        .update({Invitation.status: InvitationStatus.REVOKED.value}, synchronize_session=False)
    )
    if revoked != 1:
        db.rollback()
        raise ConflictError("Only pending invitations can be revoked")

    log_audit(
        db,
        actor_id=admin.id,
        action="INVITATION_REVOKE",
        entity_type="invitation",
        entity_id=invitation.id,
        meta={"email": invitation.email},
        commit=False,
    )
    db.commit()
    db.refresh(invitation)
    return invitation
