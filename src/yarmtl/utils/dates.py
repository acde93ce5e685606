"""
Date resolution for deadline and reminder values.

Pure functions, no dependencies on other yarmtl modules. Relative keywords are
always resolved against an explicit ``today`` so parsing is deterministic.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional

ISO_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

RELATIVE_OFFSETS = {
    "yesterday": -1,
    "today": 0,
    "tomorrow": 1,
}


def resolve_date(value: str, today: date) -> Optional[date]:
    """
    Resolve a deadline/reminder value into a calendar date.

    Supports:
    - ISO 8601: "2026-02-15" (must be a real calendar date)
    - Keywords: "today", "tomorrow", "yesterday"
    - Day names: "friday" -> the next Friday strictly after today

    Args:
        value: Token value without its ``!``/``@`` prefix
        today: Reference date for relative keywords

    Returns:
        The resolved date, or None if the value is not recognised
    """
    if not value:
        return None

    lowered = value.lower()

    if lowered in RELATIVE_OFFSETS:
        return today + timedelta(days=RELATIVE_OFFSETS[lowered])

    if lowered in DAY_NAMES:
        days_ahead = DAY_NAMES.index(lowered) - today.weekday()
        if days_ahead <= 0:
            days_ahead += 7
        return today + timedelta(days=days_ahead)

    if ISO_DATE_RE.match(value):
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            return None

    return None


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` string, returning None for empty input."""
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%d").date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")
