"""UTC clock helpers; timestamps are stored naive (TIMESTAMP WITHOUT TIME ZONE)"""

from datetime import date, datetime, timezone


def get_utc_now() -> datetime:
    """Current UTC time without tzinfo, matching the stored columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_utc_today() -> date:
    """Business date used for due-date and overdue checks"""
    return get_utc_now().date()
