"""Time Utilities - UTC timestamps, parsing and staleness"""
from datetime import date, datetime, timezone, timedelta
from typing import Optional, Union
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def to_calendar_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Coerce a date-like value to a calendar date

    Accepts date, datetime or ISO strings ("2024-03-01", "2024-03-01T10:00:00Z").
    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date_parser.isoparse(value.strip()).date()
        except ValueError:
            return None
    return None


def is_stale(fetched_at: Optional[datetime], max_age_seconds: int) -> bool:
    """Check whether a value fetched at `fetched_at` is older than max_age_seconds"""
    if fetched_at is None:
        return True
    return utc_now() - fetched_at > timedelta(seconds=max_age_seconds)
