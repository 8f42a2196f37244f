"""Request date parsing and previous-trading-day resolution.

All validation happens here, before any provider request is made.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from pivotscan.errors import InvalidDateError, InvalidDateRangeError

_DATE_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")


def parse_request_date(raw: str) -> date:
    """Parse a ``DD-MM-YYYY`` request date.

    Raises:
        InvalidDateError: On the wrong shape or an impossible calendar date.
    """
    match = _DATE_RE.match(raw)
    if match is None:
        raise InvalidDateError(
            "Invalid date format. Please use DD-MM-YYYY format (example: 25-12-2023)"
        )
    day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        raise InvalidDateError(
            "Invalid date provided. Please check the date values"
        ) from None


def market_today(
    tz_name: str = "Asia/Kolkata",
    now: Optional[datetime] = None,
) -> date:
    """Return the current calendar date in the market's time zone."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()


def is_trading_day(d: date, holidays: Iterable[date] = ()) -> bool:
    """Return True for a weekday that is not a configured holiday."""
    return d.weekday() < 5 and d not in set(holidays)


def previous_trading_day(d: date, holidays: Iterable[date] = ()) -> date:
    """Return the nearest earlier trading day.

    Monday and Sunday resolve to Friday; configured holidays are skipped.
    """
    holiday_set = set(holidays)
    prev = d - timedelta(days=1)
    while not is_trading_day(prev, holiday_set):
        prev -= timedelta(days=1)
    return prev


def resolve_session_dates(
    current: date,
    holidays: Iterable[date] = (),
    today: Optional[date] = None,
) -> tuple[date, date]:
    """Return ``(previous_session, current_session)`` for *current*.

    Raises:
        InvalidDateRangeError: If *current* is in the future or is not a
            trading day.
    """
    holiday_set = set(holidays)
    today = today or market_today()
    if current > today:
        raise InvalidDateRangeError(
            f"Date {current.isoformat()} is in the future"
        )
    if not is_trading_day(current, holiday_set):
        raise InvalidDateRangeError(
            f"Date {current.isoformat()} is not a trading day"
        )
    return previous_trading_day(current, holiday_set), current
