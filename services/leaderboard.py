"""Per-rep leaderboard rows and their ranking."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .metrics import MetricTotals, is_metric_key, reduce_actuals

SORT_DIRECTIONS = ("asc", "desc")
DEFAULT_METRIC = "dials"


@dataclass
class LeaderboardRow:
    id: str
    name: str
    totals: MetricTotals = field(default_factory=MetricTotals)

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, **self.totals.as_dict()}


def build_rows(
    reps: Iterable[Mapping[str, Any]], records: Iterable[Mapping[str, Any]]
) -> List[LeaderboardRow]:
    """One row per rep in ``reps`` order; reps without entries score zero."""

    by_user: Dict[str, List[Mapping[str, Any]]] = {}
    for record in records:
        by_user.setdefault(str(record.get("user_id")), []).append(record)
    return [
        LeaderboardRow(
            id=str(rep["id"]),
            name=str(rep.get("name") or ""),
            totals=reduce_actuals(by_user.get(str(rep["id"]), [])),
        )
        for rep in reps
    ]


def _name_key(row: LeaderboardRow) -> Tuple[str, str]:
    """Accent- and case-insensitive base letters first, casefolded name as tie-break."""
    folded = row.name.casefold()
    decomposed = unicodedata.normalize("NFKD", folded)
    base = "".join(char for char in decomposed if not unicodedata.combining(char))
    return base, folded


def rank_leaderboard(
    rows: Sequence[LeaderboardRow], sort_key: str = DEFAULT_METRIC, direction: str = "desc"
) -> List[LeaderboardRow]:
    """Sort ``rows`` by name or by a metric.

    The sort is stable in both directions, so tied rows keep their input order.
    Unknown metrics fall back to dials and unknown directions to descending.
    """

    descending = direction != "asc"
    if sort_key == "name":
        return sorted(rows, key=_name_key, reverse=descending)
    metric = sort_key if is_metric_key(sort_key) else DEFAULT_METRIC
    return sorted(rows, key=lambda row: row.totals.value(metric), reverse=descending)


def with_ranks(rows: Sequence[LeaderboardRow]) -> List[Dict[str, Any]]:
    """Attach 1-based positional ranks; ties get consecutive ranks."""
    return [{"rank": position, **row.as_dict()} for position, row in enumerate(rows, start=1)]


def toggle_direction(active_sort: str, column: str, direction: str) -> str:
    return "asc" if active_sort == column and direction == "desc" else "desc"
