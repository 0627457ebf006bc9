"""
Database models
"""
from clinic_backend.models.user import User, Role, UserStatus, STAFF_ROLES
from clinic_backend.models.staff_profile import StaffProfile
from clinic_backend.models.mfa_code import MFACode
from clinic_backend.models.access_token import AccessToken
from clinic_backend.models.invitation import Invitation, InvitationStatus
from clinic_backend.models.audit_log import AuditLog

__all__ = [
    "User",
    "Role",
    "UserStatus",
    "STAFF_ROLES",
    "StaffProfile",
    "MFACode",
    "AccessToken",
    "Invitation",
    "InvitationStatus",
    "AuditLog",
]
