"""Fold daily entries into aggregate activity totals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

METRIC_KEYS = (
    "dials",
    "prospects",
    "setsNewBiz",
    "setsExpansion",
    "setsTotal",
    "sqos",
)

METRIC_LABELS = {
    "dials": "Dials",
    "prospects": "New Prospects",
    "setsNewBiz": "New Biz Sets",
    "setsExpansion": "Expansion Sets",
    "setsTotal": "Total Sets",
    "sqos": "SQOs",
}

_ATTRIBUTES = {
    "dials": "dials",
    "prospects": "prospects",
    "setsNewBiz": "sets_new_biz",
    "setsExpansion": "sets_expansion",
    "setsTotal": "sets_total",
    "sqos": "sqos",
}

# Accumulated attribute -> entry column. ``sets_total`` is never read from an
# entry; it is always derived from the split fields.
ACTUAL_FIELDS = {
    "dials": "actual_dials",
    "prospects": "actual_new_prospects",
    "sets_new_biz": "actual_sets_new_biz",
    "sets_expansion": "actual_sets_expansion",
    "sqos": "actual_sqos",
}

GOAL_FIELDS = {
    "dials": "goal_dials",
    "prospects": "goal_new_prospects",
    "sets_new_biz": "goal_sets_new_biz",
    "sets_expansion": "goal_sets_expansion",
    "sqos": "goal_sqos",
}


def is_metric_key(value: Any) -> bool:
    return value in _ATTRIBUTES


def _int(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class MetricTotals:
    dials: int = 0
    prospects: int = 0
    sets_new_biz: int = 0
    sets_expansion: int = 0
    sets_total: int = 0
    sqos: int = 0

    def value(self, metric_key: str) -> int:
        return getattr(self, _ATTRIBUTES[metric_key])

    def as_dict(self) -> Dict[str, int]:
        return {key: self.value(key) for key in METRIC_KEYS}


def _fold(records: Iterable[Mapping[str, Any]], fields: Mapping[str, str]) -> MetricTotals:
    totals = MetricTotals()
    for record in records:
        for attribute, column in fields.items():
            setattr(totals, attribute, getattr(totals, attribute) + _int(record.get(column)))
    totals.sets_total = totals.sets_new_biz + totals.sets_expansion
    return totals


def reduce_entries(
    records: Iterable[Mapping[str, Any]], fields: Mapping[str, str] = ACTUAL_FIELDS
) -> MetricTotals:
    """Sum ``records`` over the columns selected by ``fields``.

    An absent value and an explicit zero are indistinguishable in the result.
    """

    return _fold(records, fields)


def reduce_actuals(records: Iterable[Mapping[str, Any]]) -> MetricTotals:
    return _fold(records, ACTUAL_FIELDS)


def reduce_goals(records: Iterable[Mapping[str, Any]]) -> MetricTotals:
    return _fold(records, GOAL_FIELDS)


def reduce_by_date(
    records: Iterable[Mapping[str, Any]], fields: Mapping[str, str] = ACTUAL_FIELDS
) -> List[Tuple[str, MetricTotals]]:
    """Per-date totals in ascending date order."""

    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for record in records:
        grouped.setdefault(str(record.get("date") or ""), []).append(record)
    return [(key, _fold(grouped[key], fields)) for key in sorted(grouped) if key]


def entries_within(
    records: Iterable[Mapping[str, Any]], start: Optional[str], end: Optional[str]
) -> List[Mapping[str, Any]]:
    """Records dated within ``[start, end]``; open bounds are unbounded."""

    selected = []
    for record in records:
        entry_date = str(record.get("date") or "")
        if not entry_date:
            continue
        if start and entry_date < start:
            continue
        if end and entry_date > end:
            continue
        selected.append(record)
    return selected


@dataclass(frozen=True)
class MinimumStandards:
    dials: int
    prospects: int


def evaluate_standards(
    entry: Optional[Mapping[str, Any]], standards: MinimumStandards
) -> Dict[str, bool]:
    """Flag goals set below, and actuals meeting, the minimum standards.

    Flags stay ``False`` for fields that were never filled in.
    """

    entry = entry or {}

    def _filled(column: str) -> Optional[int]:
        value = entry.get(column)
        if value in (None, ""):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    goal_dials = _filled("goal_dials")
    goal_prospects = _filled("goal_new_prospects")
    actual_dials = _filled("actual_dials")
    actual_prospects = _filled("actual_new_prospects")
    return {
        "goalDialsBelow": goal_dials is not None and goal_dials < standards.dials,
        "goalProspectsBelow": goal_prospects is not None and goal_prospects < standards.prospects,
        "metDials": actual_dials is not None and actual_dials >= standards.dials,
        "metProspects": actual_prospects is not None and actual_prospects >= standards.prospects,
    }
