"""
One-time login code model

Only the keyed hash of a code is stored. Records are never deleted by the
application; a code is dead once used or past expires_at.
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from clinic_backend.db.base import Base
from clinic_backend.models.user import new_uuid
from clinic_backend.utils.datetime_utils import now_utc


class MFACode(Base):
    __tablename__ = "mfa_codes"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    code_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    user = relationship("User", back_populates="mfa_codes")

    __table_args__ = (
        Index("ix_mfa_codes_user_created", "user_id", "created_at"),
    )
