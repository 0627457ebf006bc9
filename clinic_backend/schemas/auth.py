"""
Authentication schemas
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from clinic_backend.schemas.staff import UserOut
from clinic_backend.utils.validators import normalize_email_address


class LoginRequest(BaseModel):
    """Login request schema"""
    email: EmailStr = Field(..., description="Staff email")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return normalize_email_address(v)


class LoginResponse(BaseModel):
    """
    First login step

    mfa_required=True: a code was sent to the phone on file; call verify-mfa.
    mfa_required=False: the account is exempt and token/user are filled in.
    """
    message: str
    user_id: str
    mfa_required: bool = True
    token: Optional[str] = None
    token_type: Optional[str] = None
    user: Optional[UserOut] = None


class VerifyMfaRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=36, description="User id returned by /staff/login")
    code: str = Field(..., pattern=r"^\d{6}$", description="Six-digit code received by SMS")


class TokenResponse(BaseModel):
    """Bearer token returned after a completed login"""
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    user: UserOut


class MessageResponse(BaseModel):
    message: str
