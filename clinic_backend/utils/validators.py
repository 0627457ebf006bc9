"""
Input validators shared by request schemas and services.

Each returns the normalized value or raises ValueError with a client-facing message.
"""
import re

from email_validator import EmailNotValidError, validate_email

_PHONE_RE = re.compile(r"^\+?[0-9][0-9 ()\-]{5,18}[0-9]$")

PHONE_MAX_LENGTH = 20


def normalize_email_address(value: str) -> str:
    """Emails are identities: trimmed and lower-cased as a whole"""
    return value.strip().lower()


def validate_email_address(value: str) -> str:
    if value is None or not value.strip():
        raise ValueError("The email field is required")
    try:
        result = validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(f"The email must be a valid email address: {e}")
    return normalize_email_address(result.normalized)


def validate_phone(value: str) -> str:
    if value is None or not value.strip():
        raise ValueError("The phone field is required")
    value = value.strip()
    if len(value) > PHONE_MAX_LENGTH or not _PHONE_RE.match(value):
        raise ValueError(f"The phone must be a valid phone number of at most {PHONE_MAX_LENGTH} characters")
    return value
