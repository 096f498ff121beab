"""
Password Policy Validation

Accounts are created by coaching staff on behalf of athletes, so the policy is
deliberately short: a minimum length plus the bcrypt input limit.
"""
from typing import Tuple, List

from core.config import settings

BCRYPT_MAX_BYTES = 72


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate password against the account policy.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = []
    min_length = settings.PASSWORD_MIN_LENGTH

    if len(password or "") < min_length:
        errors.append(f"Password must be at least {min_length} characters")

    if len((password or "").encode("utf-8")) > BCRYPT_MAX_BYTES:
        errors.append(f"Password must not exceed {BCRYPT_MAX_BYTES} bytes (bcrypt limit)")

    return len(errors) == 0, errors


def get_password_requirements_text() -> str:
    """Return human-readable password requirements."""
    return f"Password requirements:\n• {settings.PASSWORD_MIN_LENGTH}-{BCRYPT_MAX_BYTES} characters"
