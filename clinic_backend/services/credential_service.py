"""
Credential service - user identity, password check and admin-guarded mutations
"""
import hmac
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from clinic_backend.core.config import settings
from clinic_backend.core.constants import BOOTSTRAP_ADMIN_DEPARTMENT
from clinic_backend.core.errors import (
    AccountInactive,
    AuthError,
    AuthorizationError,
    ConflictError,
    InvalidCredentials,
    LastAdminError,
    NotFoundError,
    ValidationError,
)
from clinic_backend.core.security import hash_password, normalize_email, validate_password, verify_password
from clinic_backend.models.staff_profile import StaffProfile
from clinic_backend.models.user import Role, User, UserStatus
from clinic_backend.schemas.staff import BootstrapAdminRequest, StaffSelfUpdate, StaffUpdate
from clinic_backend.services.audit_service import log_audit
from clinic_backend.utils.enums import enum_to_str
from clinic_backend.utils.validators import validate_email_address, validate_phone

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "job_title", "department_unit")
USER_FIELDS = ("name", "phone", "department", "role", "status")
SELF_USER_FIELDS = ("name", "phone")


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def authenticate(db: Session, email: str, password: str) -> User:
    """
    Check an email/password pair

    Returns:
        The matching active User

    Raises:
        InvalidCredentials: Unknown email or wrong password
        AccountInactive: Credentials are right but the account is deactivated
    """
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentials()

    if not user.is_active:
        raise AccountInactive()

    return user


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    role: Role = Role.STAFF,
    status: UserStatus = UserStatus.ACTIVE,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    department: Optional[str] = None,
) -> User:
    """
    Add a new credential to the session (flushed, not committed)

    The caller owns the transaction so provisioning can be combined with other
    writes atomically.

    Raises:
        ConflictError: If a user with this email already exists
    """
    email = normalize_email(email)
    if get_user_by_email(db, email) is not None:
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        role=enum_to_str(role),
        status=enum_to_str(status),
        name=name,
        phone=phone,
        department=department,
    )
    db.add(user)
    try:
        # Unique index on users.email settles concurrent provisioning
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A user with this email already exists")
    return user


def _locked_admin_ids(db: Session, active_only: bool) -> List[str]:
    """
    IDs of admins, row-locked until the end of the transaction

    FOR UPDATE serializes concurrent last-admin checks on PostgreSQL; SQLite
    ignores it and relies on its database-level write lock.
    """
    query = db.query(User.id).filter(User.role == Role.ADMIN.value)
    if active_only:
        query = query.filter(User.status == UserStatus.ACTIVE.value)
    return [row.id for row in query.with_for_update().all()]


def _guard_last_admin(
    db: Session,
    target: User,
    *,
    new_role: Optional[str] = None,
    new_status: Optional[str] = None,
    deleting: bool = False,
) -> None:
    """
    Refuse a mutation that would leave no (active) admin

    Raises:
        LastAdminError: If target is the last active admin and would stop being
            one, or the last admin at all and would be deleted
    """
    if not target.is_admin:
        return

    if deleting:
        if [i for i in _locked_admin_ids(db, active_only=False) if i != target.id]:
            return
        raise LastAdminError("Cannot delete the last admin")

    loses_admin = (new_role is not None and new_role != Role.ADMIN.value) or (
        new_status is not None and new_status != UserStatus.ACTIVE.value
    )
    if not loses_admin or not target.is_active:
        return

    if [i for i in _locked_admin_ids(db, active_only=True) if i != target.id]:
        return
    raise LastAdminError("Cannot deactivate the last active admin")


def _get_staff_or_404(db: Session, user_id: str) -> User:
    user = (
        db.query(User)
        .options(joinedload(User.staff_profile))
        .filter(User.id == user_id, User.role != Role.PATIENT.value)
        .first()
    )
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_staff(db: Session, user_id: str) -> User:
    return _get_staff_or_404(db, user_id)


def list_staff(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status: Optional[UserStatus] = None,
    role: Optional[Role] = None,
) -> Tuple[List[User], int]:
    """List every non-patient credential with its profile, newest first"""
    query = db.query(User).filter(User.role != Role.PATIENT.value)
    if status is not None:
        query = query.filter(User.status == enum_to_str(status))
    if role is not None:
        query = query.filter(User.role == enum_to_str(role))

    total = query.with_entities(func.count(User.id)).scalar()
    users = (
        query.options(joinedload(User.staff_profile))
        .order_by(User.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return users, total


def set_status(db: Session, user_id: str, status: UserStatus, actor: User) -> User:
    """
    Activate or deactivate a staff member

    Raises:
        NotFoundError: Unknown user
        LastAdminError: Deactivating the last active admin
    """
    target = _get_staff_or_404(db, user_id)
    new_status = enum_to_str(status)
    _guard_last_admin(db, target, new_status=new_status)

    previous = target.status
    target.status = new_status
    log_audit(
        db,
        actor_id=actor.id,
        action="USER_ACTIVATE" if status == UserStatus.ACTIVE else "USER_DEACTIVATE",
        entity_type="user",
        entity_id=target.id,
        meta={"previous_status": previous, "status": new_status},
        commit=False,
    )
    db.commit()
    db.refresh(target)
    logger.info("User %s status %s -> %s by %s", target.id, previous, new_status, actor.id)
    return target


def _apply_profile_changes(target: User, profile_changes: dict) -> None:
    if not profile_changes:
        return
    if target.staff_profile is None:
        target.staff_profile = StaffProfile(
            first_name=profile_changes.get("first_name", target.name),
            last_name=profile_changes.get("last_name"),
            job_title=profile_changes.get("job_title"),
            department_unit=profile_changes.get("department_unit", target.department),
        )
    else:
        for field, value in profile_changes.items():
            setattr(target.staff_profile, field, value)


def update_staff(db: Session, user_id: str, data: StaffUpdate, actor: User) -> User:
    """
    Apply an admin update to a staff member and their profile

    A profile is created when profile fields are supplied for a user without one.
    """
    target = _get_staff_or_404(db, user_id)
    changes = data.model_dump(exclude_unset=True)
    # role and status are NOT NULL; an explicit null means "leave unchanged"
    for field in ("role", "status"):
        if field in changes and changes[field] is None:
            del changes[field]

    user_changes = {k: enum_to_str(v) for k, v in changes.items() if k in USER_FIELDS}
    profile_changes = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}

    _guard_last_admin(
        db,
        target,
        new_role=user_changes.get("role"),
        new_status=user_changes.get("status"),
    )

    for field, value in user_changes.items():
        setattr(target, field, value)

    _apply_profile_changes(target, profile_changes)

    log_audit(
        db,
        actor_id=actor.id,
        action="USER_UPDATE",
        entity_type="user",
        entity_id=target.id,
        meta={"fields": sorted(changes)},
        commit=False,
    )
    db.commit()
    db.refresh(target)
    return target


def update_own_profile(db: Session, user: User, data: StaffSelfUpdate) -> User:
    """
    Self-service update of contact and profile fields

    Role, status and department stay admin-only. Explicit nulls are ignored so
    the phone that receives login codes cannot be cleared.
    """
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

    for field in SELF_USER_FIELDS:
        if field in changes:
            setattr(user, field, changes[field])
    _apply_profile_changes(user, {k: v for k, v in changes.items() if k in PROFILE_FIELDS})

    log_audit(
        db,
        actor_id=user.id,
        action="PROFILE_UPDATE",
        entity_type="user",
        entity_id=user.id,
        meta={"fields": sorted(changes)},
        commit=False,
    )
    db.commit()
    db.refresh(user)
    return user


def delete_staff(db: Session, user_id: str, actor: User) -> None:
    """
    Delete a staff member with their profile, codes and sessions

    Raises:
        NotFoundError: Unknown user
        LastAdminError: Deleting the last admin
    """
    target = _get_staff_or_404(db, user_id)
    _guard_last_admin(db, target, deleting=True)

    log_audit(
        db,
        actor_id=actor.id,
        action="USER_DELETE",
        entity_type="user",
        entity_id=target.id,
        meta={"email": target.email, "role": target.role},
        commit=False,
    )
    db.delete(target)
    db.commit()
    logger.info("User %s deleted by %s", user_id, actor.id)


def _check_bootstrap_key(provided_key: Optional[str]) -> None:
    expected = settings.ADMIN_BOOTSTRAP_KEY
    if not expected or not provided_key:
        raise AuthError("Unauthorized")
    if not hmac.compare_digest(provided_key.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError("Unauthorized")


def _validate_bootstrap_form(data: BootstrapAdminRequest) -> dict:
    errors = {}
    cleaned = {}
    checks = (
        ("email", lambda: validate_email_address(data.email)),
        ("password", lambda: validate_password(data.password, data.password_confirmation or "")),
        ("phone", lambda: validate_phone(data.phone) if data.phone else None),
    )
    for field, check in checks:
        try:
            cleaned[field] = check()
        except ValueError as e:
            errors[field] = [str(e)]

    name = (data.name or "").strip() or None
    if name is not None and len(name) > 100:
        errors["name"] = ["The name may not be greater than 100 characters"]
    cleaned["name"] = name

    if errors:
        raise ValidationError(errors=errors)
    return cleaned


def bootstrap_admin(db: Session, provided_key: Optional[str], data: BootstrapAdminRequest) -> User:
    """
    Create the very first admin

    Order of checks: shared secret (401), an admin already exists (403),
    then input validation (422).
    """
    _check_bootstrap_key(provided_key)

    if db.query(User.id).filter(User.role == Role.ADMIN.value).first() is not None:
        raise AuthorizationError("Admin already exists")

    cleaned = _validate_bootstrap_form(data)

    admin = create_user(
        db,
        email=cleaned["email"],
        password=cleaned["password"],
        role=Role.ADMIN,
        name=cleaned["name"],
        phone=cleaned["phone"],
        department=BOOTSTRAP_ADMIN_DEPARTMENT,
    )
    admin.staff_profile = StaffProfile(
        first_name=cleaned["name"],
        department_unit=BOOTSTRAP_ADMIN_DEPARTMENT,
    )
    log_audit(
        db,
        actor_id=admin.id,
        action="ADMIN_BOOTSTRAP",
        entity_type="user",
        entity_id=admin.id,
        meta={"email": admin.email},
        commit=False,
    )
    db.commit()
    db.refresh(admin)
    logger.info("Bootstrap admin %s created", admin.id)
    return admin
