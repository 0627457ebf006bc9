"""
Invitation schemas
"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, field_serializer, computed_field, ConfigDict

from clinic_backend.models.user import Role, STAFF_ROLES
from clinic_backend.models.invitation import InvitationStatus
from clinic_backend.utils.datetime_utils import iso_8601_utc, is_past
from clinic_backend.utils.validators import normalize_email_address


class InvitationCreate(BaseModel):
    """Admin request to invite a new staff member"""
    email: EmailStr
    role: Role
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    department: str = Field(..., min_length=1, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    start_date: Optional[date] = None

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return normalize_email_address(v)

    @field_validator("role")
    @classmethod
    def _staff_role(cls, v):
        if v not in STAFF_ROLES:
            raise ValueError(f"role must be one of {[r.value for r in STAFF_ROLES]}")
        return v


class InvitationCreated(BaseModel):
    message: str = "Invitation sent successfully"
    invitation_id: str
    token: str
    expires_at: datetime

    @field_serializer("expires_at")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)


class InvitationOut(BaseModel):
    """Invitation as seen by admins. The token is never exposed after creation."""
    id: str
    email: str
    role: Role
    status: InvitationStatus
    invited_by: Optional[str] = None
    first_name: str
    last_name: str
    job_title: str
    department_unit: str
    start_date: Optional[date] = None
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    accepted_user_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def is_expired(self) -> bool:
        return self.status == InvitationStatus.PENDING and is_past(self.expires_at)

    @field_serializer("expires_at", "accepted_at", "created_at")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)


class AcceptInvitationRequest(BaseModel):
    """
    Invitation redemption form

    Password strength, confirmation and phone format are checked by the
    invitation service once the token has been found valid.
    """
    password: Optional[str] = None
    password_confirmation: Optional[str] = None
    phone: Optional[str] = None


class AcceptInvitationResponse(BaseModel):
    message: str = "Account created successfully. You can now login."
    user_id: str
