"""
User (credential) model
"""
import enum
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from clinic_backend.db.base import Base
from clinic_backend.utils.datetime_utils import now_utc


class Role(str, enum.Enum):
    STAFF = "staff"
    ADMIN = "admin"
    HR = "hr"
    PAYROLL = "payroll"
    # End-user accounts; never invitable and excluded from staff listings
    PATIENT = "patient"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


STAFF_ROLES = (Role.STAFF, Role.ADMIN, Role.HR, Role.PAYROLL)


def new_uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored normalized
    name = Column(String(100), nullable=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    department = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=Role.STAFF.value, index=True)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    # Relationships
    staff_profile = relationship(
        "StaffProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    mfa_codes = relationship("MFACode", back_populates="user", cascade="all, delete-orphan")
    access_tokens = relationship("AccessToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value
