"""
Staff (credential + profile) schemas
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, field_serializer, ConfigDict

from clinic_backend.models.user import Role, UserStatus
from clinic_backend.utils.datetime_utils import iso_8601_utc
from clinic_backend.utils.validators import validate_phone


class StaffProfileOut(BaseModel):
    """Extended identity attributes of a staff member"""
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    job_title: Optional[str] = None
    department_unit: Optional[str] = None
    start_date: Optional[date] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class UserOut(BaseModel):
    """Credential as exposed by the API. Never carries the password hash."""
    id: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    role: Role
    status: UserStatus
    created_at: datetime
    staff_profile: Optional[StaffProfileOut] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)


class StaffListOut(BaseModel):
    data: List[UserOut]
    total: int


class StaffUpdate(BaseModel):
    """Admin update of a staff member; only supplied fields change"""
    name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    department: Optional[str] = Field(None, max_length=255)
    role: Optional[Role] = None
    status: Optional[UserStatus] = None
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    department_unit: Optional[str] = Field(None, max_length=255)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v):
        return validate_phone(v) if v is not None else None


class StaffSelfUpdate(BaseModel):
    """Fields a staff member may change on their own account"""
    name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    department_unit: Optional[str] = Field(None, max_length=255)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v):
        return validate_phone(v) if v is not None else None


class StaffActionOut(BaseModel):
    message: str
    staff: UserOut


class BootstrapAdminRequest(BaseModel):
    """
    First-admin bootstrap form

    Fields are only checked for presence here; the bootstrap service validates
    them after the shared-secret and admin-exists checks.
    """
    email: Optional[str] = None
    password: Optional[str] = None
    password_confirmation: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None


class AdminSummary(BaseModel):
    id: str
    email: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


class BootstrapAdminResponse(BaseModel):
    message: str = "Admin account created successfully"
    admin: AdminSummary
