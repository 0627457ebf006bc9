"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from clinic_backend.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String, nullable=False, index=True)  # e.g. "AUTH_LOGIN_SUCCESS", "INVITATION_ACCEPT"
    entity_type = Column(String, nullable=False)  # e.g. "auth", "user", "invitation"
    entity_id = Column(String(36), nullable=True)
    meta_json = Column(JSON, nullable=True)
    # Set explicitly by log_audit; no server default so SQLite and PostgreSQL behave the same
    created_at = Column(DateTime(timezone=True), nullable=False)
