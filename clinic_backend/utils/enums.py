"""Helpers for the str-valued enums (Role, UserStatus, InvitationStatus) kept in String columns."""
from enum import Enum


def enum_to_str(v):
    """
    Column value for an enum member or an already-plain string.

    Examples:
        >>> enum_to_str(Role.ADMIN)
        'admin'
        >>> enum_to_str(UserStatus.INACTIVE)
        'inactive'
        >>> enum_to_str('pending')
        'pending'
        >>> enum_to_str(None) is None
        True
    """
    if v is None:
        return None
    return v.value if isinstance(v, Enum) else str(v)
