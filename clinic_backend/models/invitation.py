"""
Staff invitation model
"""
import enum

from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from clinic_backend.db.base import Base
from clinic_backend.models.user import new_uuid
from clinic_backend.utils.datetime_utils import now_utc


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), nullable=False, index=True)  # stored normalized
    token_hash = Column(String(64), unique=True, nullable=False)
    invited_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    role = Column(String(20), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default=InvitationStatus.PENDING.value)

    # Staged profile, copied onto the StaffProfile at redemption
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    job_title = Column(String(255), nullable=False)
    department_unit = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=True)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        # At most one pending invitation per email
        Index(
            "uq_invitations_pending_email",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )
