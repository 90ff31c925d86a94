"""Trailing month-over-month summaries for the manager hub."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .dates import DEFAULT_TIME_ZONE, month_keys, month_range
from .metrics import METRIC_KEYS, MetricTotals, entries_within, reduce_actuals


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class MonthBucket:
    month_key: str
    start: str
    end: str
    totals: MetricTotals = field(default_factory=MetricTotals)
    entry_count: int = 0

    def averages(self) -> Dict[str, int]:
        """Per-entry averages; an empty month averages to zero."""
        divisor = max(self.entry_count, 1)
        return {
            key: _round_half_up(self.totals.value(key) / divisor) for key in METRIC_KEYS
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "monthKey": self.month_key,
            "start": self.start,
            "end": self.end,
            "entryCount": self.entry_count,
            "totals": self.totals.as_dict(),
            "averages": self.averages(),
        }


def summarize_trailing_months(
    count: int,
    records: Iterable[Mapping[str, Any]],
    zone_name: str = DEFAULT_TIME_ZONE,
    now: Optional[datetime] = None,
) -> List[MonthBucket]:
    """``count`` month buckets, newest month first."""

    records = list(records)
    buckets: List[MonthBucket] = []
    for key in month_keys(count, zone_name, now):
        start, end = month_range(key)
        in_month = entries_within(records, start, end)
        buckets.append(
            MonthBucket(
                month_key=key,
                start=start,
                end=end,
                totals=reduce_actuals(in_month),
                entry_count=len(in_month),
            )
        )
    return buckets


def summarize_by_rep(
    count: int,
    reps: Iterable[Mapping[str, Any]],
    records: Iterable[Mapping[str, Any]],
    zone_name: str = DEFAULT_TIME_ZONE,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    by_user: Dict[str, List[Mapping[str, Any]]] = {}
    for record in records:
        by_user.setdefault(str(record.get("user_id")), []).append(record)
    return [
        {
            "id": str(rep["id"]),
            "name": rep.get("name"),
            "months": summarize_trailing_months(
                count, by_user.get(str(rep["id"]), []), zone_name, now
            ),
        }
        for rep in reps
    ]
