"""Booking number generation."""

import re
import secrets
from datetime import datetime
from typing import Optional

BOOKING_NUMBER_PREFIX = "HT"
BOOKING_NUMBER_PATTERN = re.compile(r"^HT(\d{4})(\d{2})(\d{4})$")


def next_booking_number(now: Optional[datetime] = None) -> str:
    """
    Generate a human-readable booking number.

    Format is ``HT`` + four-digit year + two-digit month + four random digits,
    e.g. ``HT2025030417``. Uniqueness is not guaranteed here; the caller must
    check and retry against the unique index.

    Args:
        now: Clock reading to take year and month from (defaults to UTC now)

    Returns:
        Booking number string
    """
    now = now or datetime.utcnow()
    suffix = secrets.randbelow(10000)
    return f"{BOOKING_NUMBER_PREFIX}{now.year:04d}{now.month:02d}{suffix:04d}"


def is_booking_number(value: str) -> bool:
    match = BOOKING_NUMBER_PATTERN.match(value)
    return bool(match) and 1 <= int(match.group(2)) <= 12
