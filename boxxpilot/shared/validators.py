"""Shared validation utilities"""

import html
import math
import re
import uuid
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def parse_start_time(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse an HH:MM wall-clock time.

    Returns:
        (hours, minutes) or None when the value is missing or malformed
    """
    if not value:
        return None

    match = TIME_PATTERN.match(value.strip())
    if not match:
        return None

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours, minutes


def sanitize_text(value: Optional[str], max_length: int = 2000) -> Optional[str]:
    """Escape HTML in customer-supplied free text; blank input becomes None"""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    return html.escape(value[:max_length], quote=True)


def is_finite_number(value) -> bool:
    """True for real numbers that are not NaN or infinite (bools excluded)"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def derive_schedule(
    moving_date: Optional[date],
    start_time: Optional[str],
    estimated_hours: Optional[float],
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Scheduled start/end instants from a move date, start time and duration.

    Returns (None, None) when any input is missing or invalid; callers store
    that as "no schedule" rather than falling back to a default.
    """
    parsed = parse_start_time(start_time)
    if moving_date is None or parsed is None:
        return None, None
    if not is_finite_number(estimated_hours) or estimated_hours <= 0:
        return None, None

    hours, minutes = parsed
    start = datetime(moving_date.year, moving_date.month, moving_date.day, hours, minutes)
    try:
        return start, start + timedelta(hours=estimated_hours)
    except OverflowError:
        return None, None
