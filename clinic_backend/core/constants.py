"""
Service-wide constants
"""

SERVICE_NAME = "clinic-staff-backend"

# One-time codes are six decimal digits, leading zeros preserved
MFA_CODE_LENGTH = 6

# Department given to the profile created for the bootstrapped admin
BOOTSTRAP_ADMIN_DEPARTMENT = "Administration"

# Job title staged on invitations when the inviter does not supply one
DEFAULT_JOB_TITLE = "Staff"

# Password rules shared by bootstrap and invitation redemption
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72

ADMIN_KEY_HEADER = "X-Admin-Key"
