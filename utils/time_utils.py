"""
utils/time_utils.py

Purpose: Time and expiry helpers

- Subscription period calculations
- Expiry checks
- Date parsing for query filters
"""

import calendar
from datetime import datetime, timedelta
from typing import Optional

def add_months(dt: datetime, months: int) -> datetime:
    """
    Adds calendar months, clamping the day to the target month's length.
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)

def add_years(dt: datetime, years: int) -> datetime:
    return add_months(dt, 12 * years)

def calculate_end_date(payment_cycle: str, start: Optional[datetime] = None) -> datetime:
    """
    Returns the end of a billing period. Unknown cycles are treated as monthly.
    """
    start = start or datetime.utcnow()
    if payment_cycle == "yearly":
        return add_years(start, 1)
    return add_months(start, 1)

def calculate_trial_end(days: int, start: Optional[datetime] = None) -> datetime:
    start = start or datetime.utcnow()
    return start + timedelta(days=days)

def is_expired(end_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Checks whether a period has ended. A missing end date never expires.
    """
    if not end_date:
        return False
    return (now or datetime.utcnow()) > end_date

def parse_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parses an ISO date or datetime string from a query parameter.
    Returns None when the value is missing or unparseable.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - (parsed.utcoffset() or timedelta(0))
    return parsed
