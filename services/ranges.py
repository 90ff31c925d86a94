"""Translate reporting range selectors into concrete civil-date windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .dates import (
    DEFAULT_TIME_ZONE,
    add_days,
    month_range,
    today_in_zone,
    weekday_index,
)

LOGGER = logging.getLogger(__name__)

RANGE_SELECTORS = (
    ("yesterday", "Yesterday"),
    ("today", "Today"),
    ("week", "This Week"),
    ("month", "This Month"),
    ("custom", "Custom"),
)
SELECTOR_VALUES = frozenset(value for value, _ in RANGE_SELECTORS)


@dataclass(frozen=True)
class DateRange:
    """A resolved ``[start, end]`` window.

    ``start`` is not guaranteed to precede ``end`` for custom windows; an
    inverted window is legal and simply contains no dates.
    """

    selector: str
    start: str
    end: str

    @property
    def is_inverted(self) -> bool:
        return self.start > self.end

    def contains(self, iso_date: Optional[str]) -> bool:
        if not iso_date:
            return False
        return self.start <= str(iso_date) <= self.end

    def as_dict(self) -> Dict[str, Any]:
        return {"selector": self.selector, "start": self.start, "end": self.end}


def _preset_bounds(selector: str, zone_name: str, now: Optional[datetime]) -> Optional[DateRange]:
    today = today_in_zone(zone_name, now)
    if selector == "today":
        return DateRange("today", today, today)
    if selector == "yesterday":
        yesterday = add_days(today, -1, zone_name)
        return DateRange("yesterday", yesterday, yesterday)
    if selector == "week":
        weekday = weekday_index(today)
        delta = -6 if weekday == 0 else 1 - weekday
        return DateRange("week", add_days(today, delta, zone_name), today)
    if selector == "month":
        first_day, _ = month_range(today[:7])
        return DateRange("month", first_day, today)
    return None


def resolve_range(
    selector: Optional[str],
    explicit_start: Optional[str] = None,
    explicit_end: Optional[str] = None,
    zone_name: str = DEFAULT_TIME_ZONE,
    *,
    is_explicit_override: bool = False,
    now: Optional[datetime] = None,
) -> DateRange:
    """Resolve ``selector`` to a :class:`DateRange`.

    Custom windows are returned verbatim. Preset selectors always use their own
    computed bounds unless ``is_explicit_override`` marks the explicit
    start/end as a deliberate choice; stale query values are otherwise ignored.
    Unrecognised selectors resolve to today.
    """

    key = (selector or "").strip().lower()
    has_bounds = bool(explicit_start) and bool(explicit_end)

    if key == "custom" or (is_explicit_override and has_bounds):
        if has_bounds:
            return DateRange("custom", str(explicit_start), str(explicit_end))
        today = today_in_zone(zone_name, now)
        return DateRange("custom", today, today)

    resolved = _preset_bounds(key, zone_name, now)
    if resolved is None:
        if key:
            LOGGER.debug("Unrecognised range selector %r; using today", selector)
        resolved = _preset_bounds("today", zone_name, now)
    return resolved
