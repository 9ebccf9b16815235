"""Shared validation utilities"""

import re
from datetime import date
from typing import Any

MEETING_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]{10}$")
ADMIN_TOKEN_PATTERN = re.compile(r"^[a-fA-F0-9]{64}$")
UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
GUEST_REQUEST_ID_PATTERN = re.compile(r"^req_\d+_[a-z0-9]{6}$")


def _matches(pattern: re.Pattern, value: Any) -> bool:
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def is_valid_meeting_id(value: Any) -> bool:
    """Validate meeting ID format (10 alphanumeric chars)"""
    return _matches(MEETING_ID_PATTERN, value)


def is_valid_admin_token(value: Any) -> bool:
    """Validate admin token format (64 hex characters)"""
    return _matches(ADMIN_TOKEN_PATTERN, value)


def is_valid_device_token(value: Any) -> bool:
    """Validate device token format (UUID)"""
    return _matches(UUID_PATTERN, value)


def is_valid_participant_id(value: Any) -> bool:
    return _matches(UUID_PATTERN, value)


def is_valid_guest_request_id(value: Any) -> bool:
    return _matches(GUEST_REQUEST_ID_PATTERN, value)


def validate_iso_date(value: str) -> str:
    """
    Validate a calendar date in ISO format.

    Returns:
        The normalized date string (YYYY-MM-DD)

    Raises:
        ValueError: If the date is not a valid ISO date
    """
    value = (value or "").strip()
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError as e:
        raise ValueError(f"Invalid date: {value!r}") from e


def clean_display_name(value: str, max_length: int) -> str:
    """
    Trim and collapse whitespace in a display name.

    Raises:
        ValueError: If the name is empty or too long
    """
    name = " ".join((value or "").split())
    if not name:
        raise ValueError("Name is required")
    if len(name) > max_length:
        raise ValueError(f"Name must be at most {max_length} characters")
    return name
