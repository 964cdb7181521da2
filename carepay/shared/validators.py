"""Shared validation utilities"""

import re
from datetime import datetime, timezone
from typing import Optional

from .errors import ValidationError

_WHITESPACE = re.compile(r"\s+")


def utcnow() -> datetime:
    """Naive UTC timestamp, the format stored in the database"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_contact(channel_id: Optional[str]) -> str:
    """Strip all whitespace from a contact identifier (phone number)"""
    if not channel_id:
        return ""
    return _WHITESPACE.sub("", channel_id)


def require_fields(**fields) -> None:
    """
    Ensure every given field has a non-blank value.

    Raises:
        ValidationError: naming the missing fields
    """
    missing = [
        name
        for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValidationError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValidationError("Invalid email format")

    return email
