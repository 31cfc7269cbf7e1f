"""
Low-level timezone and timestamp utilities.

Upstream APIs disagree on date formats (SAM.gov wants MM/DD/YYYY, the
rest ISO dates); conversion helpers for both live here so adapters do
not format dates inline.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def now_utc() -> datetime:
    """Return the current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Return the current date in UTC timezone."""
    return now_utc().date()


def days_ago(days: int, *, today: date | None = None) -> date:
    """Return the date ``days`` before ``today`` (defaults to the UTC date)."""
    return (today or today_utc()) - timedelta(days=days)


def format_sam_date(day: date) -> str:
    """Format a date the way SAM.gov query parameters expect (MM/DD/YYYY)."""
    return day.strftime("%m/%d/%Y")


def parse_iso_date(value: str | None) -> date | None:
    """Parse the leading YYYY-MM-DD portion of an upstream date string.

    Accepts plain dates, ISO datetimes and MM/DD/YYYY. Returns None for
    anything else rather than raising; upstream schema drift is treated as
    missing data.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.strptime(text[:10], "%m/%d/%Y").date()
    except ValueError:
        return None
