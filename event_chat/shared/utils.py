"""Shared utility functions."""
import re
from typing import Optional

PASSWORD_BLACKLIST = {
    "123456",
    "123456789",
    "password",
    "qwerty",
    "111111",
    "12345678",
}


def is_password_strong(password: str, min_length: int = 10) -> bool:
    """Return True if password meets simple strength requirements."""
    if len(password) < min_length:
        return False
    if password.lower() in PASSWORD_BLACKLIST:
        return False
    if re.fullmatch(r"\d+", password):
        return False
    return True


def display_name(first_name: Optional[str], last_name: Optional[str], username: str) -> str:
    """Full name when both parts are known, otherwise the username."""
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return username


def initials(first_name: Optional[str], last_name: Optional[str], username: str) -> str:
    if first_name and last_name:
        return f"{first_name[0]}{last_name[0]}".upper()
    return username[:2].upper()
