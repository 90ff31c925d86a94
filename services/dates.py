"""Civil-date helpers anchored to a single configured time zone."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, List, Optional, Tuple

import pytz
from dateutil.parser import isoparse

DEFAULT_TIME_ZONE = "America/Los_Angeles"

_MIDDAY = time(12, 0)


def _zone(zone_name: Optional[str]) -> Any:
    try:
        return pytz.timezone(zone_name or DEFAULT_TIME_ZONE)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown time zone '{zone_name}'")


def parse_iso_date(value: Any) -> date:
    """Return ``value`` as a :class:`date`.

    Accepts ``date`` and ``datetime`` instances as well as ISO strings. Strings
    carrying a time component are truncated to their date part as written.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value in (None, ""):
        raise ValueError("A date is required")
    try:
        return isoparse(str(value).strip()).date()
    except (TypeError, ValueError):
        raise ValueError(f"Could not parse date value '{value}'")


def to_iso(value: Any) -> str:
    return parse_iso_date(value).isoformat()


def _civil_date(instant: datetime, zone_name: Optional[str]) -> date:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(_zone(zone_name)).date()


def today_in_zone(zone_name: str = DEFAULT_TIME_ZONE, now: Optional[datetime] = None) -> str:
    """Current civil date in ``zone_name``.

    ``now`` pins the instant; naive values are read as UTC.
    """

    instant = now if now is not None else datetime.now(timezone.utc)
    return _civil_date(instant, zone_name).isoformat()


def add_days(value: Any, delta: int, zone_name: str = DEFAULT_TIME_ZONE) -> str:
    """Shift a civil date by ``delta`` days.

    The shift is applied to the mid-day instant of the date in ``zone_name``,
    so DST transitions never push the result across a day boundary.
    """

    tz = _zone(zone_name)
    anchor = tz.localize(datetime.combine(parse_iso_date(value), _MIDDAY))
    shifted = tz.normalize(anchor + timedelta(days=int(delta)))
    return shifted.date().isoformat()


def yesterday_in_zone(zone_name: str = DEFAULT_TIME_ZONE, now: Optional[datetime] = None) -> str:
    return add_days(today_in_zone(zone_name, now), -1, zone_name)


def weekday_index(value: Any) -> int:
    """Sunday=0, Monday=1 ... Saturday=6."""
    return parse_iso_date(value).isoweekday() % 7


def is_weekday(value: Any) -> bool:
    return 1 <= weekday_index(value) <= 5


def enumerate_range(start: Any, end: Any) -> List[str]:
    """Every ISO date from ``start`` to ``end`` inclusive, ascending."""

    cursor = parse_iso_date(start)
    last = parse_iso_date(end)
    dates: List[str] = []
    while cursor <= last:
        dates.append(cursor.isoformat())
        cursor += timedelta(days=1)
    return dates


def month_keys(count: int, zone_name: str = DEFAULT_TIME_ZONE, now: Optional[datetime] = None) -> List[str]:
    """Trailing ``YYYY-MM`` keys, newest first, starting at the current month."""

    today = parse_iso_date(today_in_zone(zone_name, now))
    keys: List[str] = []
    for offset in range(max(0, int(count))):
        year, month_index = divmod(today.year * 12 + (today.month - 1) - offset, 12)
        # day 15 keeps the anchor valid for every month length
        anchor = date(year, month_index + 1, 15)
        keys.append(anchor.strftime("%Y-%m"))
    return keys


def month_range(month_key: str) -> Tuple[str, str]:
    """First and last civil dates of a ``YYYY-MM`` month."""

    try:
        year_text, month_text = str(month_key).split("-")[:2]
        year, month = int(year_text), int(month_text)
        last_day = calendar.monthrange(year, month)[1]
    except (TypeError, ValueError):
        raise ValueError(f"Invalid month key '{month_key}'")
    return date(year, month, 1).isoformat(), date(year, month, last_day).isoformat()
