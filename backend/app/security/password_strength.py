"""
Password strength validation.
Applied on registration, password change and password reset.
"""
import re
from typing import Tuple

MIN_LENGTH = 8


def validate_password_strength(password: str) -> Tuple[bool, str]:
    """
    Validate password strength.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    - No leading/trailing whitespace only passwords

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password or not password.strip():
        return False, "Password cannot be empty"

    if len(password) < MIN_LENGTH:
        return False, f"Password must be at least {MIN_LENGTH} characters long"

    if len(password) > 128:
        return False, "Password must be at most 128 characters long"

    if not re.search(r'[A-Za-z]', password):
        return False, "Password must contain at least one letter"

    if not re.search(r'[0-9]', password):
        return False, "Password must contain at least one digit"

    return True, ""
