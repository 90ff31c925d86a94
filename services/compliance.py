"""Detect weekdays a rep skipped their daily stand-up."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping

from .dates import DEFAULT_TIME_ZONE, add_days, enumerate_range, is_weekday, to_iso

DEFAULT_LOOKBACK_DAYS = 14


def find_missing_weekdays(
    records: Iterable[Mapping[str, Any]],
    end_date: Any,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    zone_name: str = DEFAULT_TIME_ZONE,
) -> List[str]:
    """Mon-Fri dates in the trailing window ending at ``end_date`` with no entry.

    ``records`` are expected to belong to a single rep.
    """

    if lookback_days <= 0:
        return []
    end = to_iso(end_date)
    start = add_days(end, -(int(lookback_days) - 1), zone_name)
    logged = {str(record.get("date")) for record in records if record.get("date")}
    return [
        day for day in enumerate_range(start, end) if is_weekday(day) and day not in logged
    ]
