"""Report registry turning stored stand-up entries into dashboard payloads."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .compliance import DEFAULT_LOOKBACK_DAYS, find_missing_weekdays
from .dates import (
    DEFAULT_TIME_ZONE,
    add_days,
    month_keys,
    month_range,
    parse_iso_date,
    today_in_zone,
)
from .entries import ROLE_REP, get_entry_service
from .leaderboard import SORT_DIRECTIONS, build_rows, rank_leaderboard, with_ranks
from .metrics import (
    METRIC_KEYS,
    METRIC_LABELS,
    MinimumStandards,
    evaluate_standards,
    reduce_actuals,
    reduce_by_date,
    reduce_goals,
)
from .ranges import RANGE_SELECTORS, resolve_range
from .snapshot import TrackerSnapshot
from .trends import summarize_by_rep, summarize_trailing_months

LOGGER = logging.getLogger(__name__)

DEFAULT_STANDARDS = MinimumStandards(dials=50, prospects=10)


class ReportLookupError(KeyError):
    """Raised when a report or the rep it targets does not exist."""


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------


def _serialise_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_serialise_value(entry) for entry in value]
    return value


def _summary_entry(identifier: str, label: str, value: int) -> Dict[str, Any]:
    return {"id": identifier, "label": label, "value": value, "display": f"{value:,}"}


def _options(pairs: Any) -> List[Dict[str, str]]:
    return [{"value": value, "label": label} for value, label in pairs]


# ---------------------------------------------------------------------------
# Parameter and definition primitives
# ---------------------------------------------------------------------------


@dataclass
class ReportParameter:
    name: str
    label: str
    param_type: str
    description: str = ""
    required: bool = False
    default: Any = None
    options: Optional[List[Dict[str, Any]]] = None
    options_builder: Optional[Callable[[Dict[str, Any]], List[Dict[str, Any]]]] = None
    fallback_to_default: bool = False

    def describe(self, context: Dict[str, Any]) -> Dict[str, Any]:
        options = self.options
        if self.options_builder is not None:
            options = self.options_builder(context) or []
        default_value = self.default() if callable(self.default) else self.default
        return {
            "name": self.name,
            "label": self.label,
            "type": self.param_type,
            "description": self.description,
            "required": self.required,
            "options": options,
            "default": _serialise_value(default_value),
        }

    def normalise(self, value: Any) -> Any:
        candidate = value
        if candidate in (None, ""):
            candidate = self.default() if callable(self.default) else self.default
        if candidate in (None, ""):
            if self.required:
                raise ValueError(f"{self.label} is required")
            return None
        if self.param_type == "date":
            return parse_iso_date(candidate).isoformat()
        if self.param_type == "integer":
            try:
                return int(candidate)
            except (TypeError, ValueError):
                raise ValueError(f"{self.label} must be a whole number")
        if self.param_type == "boolean":
            if isinstance(candidate, bool):
                return candidate
            if isinstance(candidate, (int, float)):
                return bool(candidate)
            return str(candidate).strip().lower() in {"true", "1", "yes", "y", "on"}
        if self.param_type == "enum":
            value_text = str(candidate)
            allowed = {option["value"] for option in self.options or []}
            if allowed and value_text not in allowed:
                if self.fallback_to_default:
                    return self.default
                raise ValueError(
                    f"Invalid value '{candidate}' for {self.label}; expected one of {sorted(allowed)}"
                )
            return value_text
        return str(candidate)


WindowBuilder = Callable[[Dict[str, Any], Dict[str, Any]], Tuple[Optional[str], Optional[str]]]
ReportRunner = Callable[[TrackerSnapshot, Dict[str, Any], Dict[str, Any]], Dict[str, Any]]


@dataclass
class ReportDefinition:
    id: str
    name: str
    description: str
    parameters: List[ReportParameter]
    runner: ReportRunner
    window: WindowBuilder
    tags: List[str] = field(default_factory=list)
    manager_only: bool = False

    def describe(self, context: Dict[str, Any]) -> Dict[str, Any]:
        defaults = {
            parameter.name: _serialise_value(
                parameter.default() if callable(parameter.default) else parameter.default
            )
            for parameter in self.parameters
        }
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parameters": [parameter.describe(context) for parameter in self.parameters],
            "tags": self.tags,
            "managerOnly": self.manager_only,
            "defaultParams": defaults,
        }

    def normalise_params(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            parameter.name: parameter.normalise(payload.get(parameter.name))
            for parameter in self.parameters
        }

    def run(
        self,
        snapshot: TrackerSnapshot,
        params: Dict[str, Any],
        context: Dict[str, Any],
    ) -> Dict[str, Any]:
        return self.runner(snapshot, params, context)


# ---------------------------------------------------------------------------
# Analytics engine
# ---------------------------------------------------------------------------


class AnalyticsEngine:
    def __init__(self) -> None:
        self._definitions: Dict[str, ReportDefinition] = {}
        self._register_default_reports()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_definition(self, report_id: str) -> ReportDefinition:
        if report_id not in self._definitions:
            raise ReportLookupError(f"Unknown analytics report '{report_id}'")
        return self._definitions[report_id]

    def list_report_definitions(
        self, conn: sqlite3.Connection, *, timezone_name: str = DEFAULT_TIME_ZONE
    ) -> List[Dict[str, Any]]:
        context = self._build_context(conn, timezone_name=timezone_name)
        return [definition.describe(context) for definition in self._definitions.values()]

    def run_report(
        self,
        conn: sqlite3.Connection,
        report_id: str,
        params: Optional[Dict[str, Any]],
        *,
        timezone_name: str = DEFAULT_TIME_ZONE,
        standards: MinimumStandards = DEFAULT_STANDARDS,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        definition = self.get_definition(report_id)
        context = self._build_context(
            conn, timezone_name=timezone_name, standards=standards, now=now
        )
        normalised_params = definition.normalise_params(params or {})
        start, end = definition.window(normalised_params, context)
        snapshot = TrackerSnapshot.build(conn, start=start, end=end, timezone=timezone_name)
        result = definition.run(snapshot, normalised_params, context)
        LOGGER.debug(
            "Report %s computed over %d entries (%s to %s)",
            report_id,
            len(snapshot.entries),
            start,
            end,
        )
        return {
            "id": definition.id,
            "name": definition.name,
            "description": definition.description,
            "generatedAt": context["now"].isoformat(),
            "timezone": timezone_name,
            "appliedParameters": {
                name: _serialise_value(value) for name, value in normalised_params.items()
            },
            **result,
        }

    # ------------------------------------------------------------------
    # Registration helpers
    # ------------------------------------------------------------------
    def register(self, definition: ReportDefinition) -> None:
        self._definitions[definition.id] = definition

    def _register_default_reports(self) -> None:
        self.register(
            ReportDefinition(
                id="team_dashboard",
                name="Team Dashboard",
                description="Team totals, leaderboard and daily totals for a reporting window.",
                parameters=[
                    ReportParameter(
                        name="range",
                        label="Range",
                        param_type="string",
                        default="yesterday",
                        options=_options(RANGE_SELECTORS),
                        description="Unrecognised selectors fall back to today.",
                    ),
                    ReportParameter(name="start", label="Start", param_type="date"),
                    ReportParameter(name="end", label="End", param_type="date"),
                    ReportParameter(
                        name="custom",
                        label="Use Explicit Dates",
                        param_type="boolean",
                        default=False,
                        description="Treat start and end as a deliberate override of the preset.",
                    ),
                    ReportParameter(
                        name="metric",
                        label="Leaderboard Metric",
                        param_type="enum",
                        default="dials",
                        options=_options((key, METRIC_LABELS[key]) for key in METRIC_KEYS),
                        fallback_to_default=True,
                    ),
                    ReportParameter(
                        name="sort",
                        label="Sort By",
                        param_type="enum",
                        default="metric",
                        options=_options((("metric", "Selected Metric"), ("name", "Rep"))),
                        fallback_to_default=True,
                    ),
                    ReportParameter(
                        name="direction",
                        label="Direction",
                        param_type="enum",
                        default="desc",
                        options=_options((value, value.upper()) for value in SORT_DIRECTIONS),
                        fallback_to_default=True,
                    ),
                ],
                runner=_run_team_dashboard,
                window=_dashboard_window,
                tags=["team", "leaderboard"],
            )
        )

        self.register(
            ReportDefinition(
                id="manager_summary",
                name="Month-over-Month Summary",
                description="Trailing monthly totals and per-entry averages for the team and each rep.",
                parameters=[
                    ReportParameter(
                        name="months",
                        label="Months",
                        param_type="integer",
                        default=6,
                    ),
                ],
                runner=_run_manager_summary,
                window=_trailing_months_window,
                tags=["manager", "trends"],
                manager_only=True,
            )
        )

        self.register(
            ReportDefinition(
                id="rep_detail",
                name="Rep Detail",
                description="Recent entries and weekdays without a stand-up for one rep.",
                parameters=[
                    ReportParameter(
                        name="rep_id",
                        label="Rep",
                        param_type="string",
                        required=True,
                        options_builder=_rep_options,
                    ),
                    ReportParameter(name="days", label="History (days)", param_type="integer", default=30),
                    ReportParameter(
                        name="lookback",
                        label="Missing Entry Lookback (days)",
                        param_type="integer",
                        default=DEFAULT_LOOKBACK_DAYS,
                    ),
                ],
                runner=_run_rep_detail,
                window=_rep_detail_window,
                tags=["manager", "compliance"],
                manager_only=True,
            )
        )

        self.register(
            ReportDefinition(
                id="rep_standup",
                name="Rep Stand-up",
                description="Today's goals and yesterday's actuals against the minimum standards.",
                parameters=[
                    ReportParameter(
                        name="rep_id",
                        label="Rep",
                        param_type="string",
                        required=True,
                        options_builder=_rep_options,
                    ),
                ],
                runner=_run_rep_standup,
                window=_standup_window,
                tags=["rep"],
            )
        )

    # ------------------------------------------------------------------
    # Context gathering
    # ------------------------------------------------------------------
    def _build_context(
        self,
        conn: sqlite3.Connection,
        *,
        timezone_name: str = DEFAULT_TIME_ZONE,
        standards: MinimumStandards = DEFAULT_STANDARDS,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return {
            "timezone": timezone_name,
            "standards": standards,
            "now": now or datetime.now(timezone.utc),
            "reps": get_entry_service().list_reps(conn, role=ROLE_REP),
        }


_engine_instance: Optional[AnalyticsEngine] = None


def get_analytics_engine() -> AnalyticsEngine:
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = AnalyticsEngine()
    return _engine_instance


def _rep_options(context: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{"value": rep["id"], "label": rep["name"]} for rep in context.get("reps", [])]


def _require_rep(snapshot: TrackerSnapshot, rep_id: str) -> Dict[str, Any]:
    rep = snapshot.user(rep_id)
    if rep is None:
        raise ReportLookupError(f"Rep {rep_id} not found")
    return rep


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------


def _dashboard_range(params: Dict[str, Any], context: Dict[str, Any]):
    return resolve_range(
        params.get("range"),
        params.get("start"),
        params.get("end"),
        context["timezone"],
        is_explicit_override=bool(params.get("custom")),
        now=context["now"],
    )


def _dashboard_window(params: Dict[str, Any], context: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    resolved = _dashboard_range(params, context)
    return resolved.start, resolved.end


def _trailing_months_window(params: Dict[str, Any], context: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    keys = month_keys(params.get("months") or 0, context["timezone"], context["now"])
    if not keys:
        return None, None
    return month_range(keys[-1])[0], month_range(keys[0])[1]


def _rep_detail_window(params: Dict[str, Any], context: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    zone = context["timezone"]
    end = today_in_zone(zone, context["now"])
    history_start = add_days(end, -max(params.get("days") or 0, 0), zone)
    lookback_start = add_days(end, -max((params.get("lookback") or 0) - 1, 0), zone)
    return min(history_start, lookback_start), end


def _standup_window(params: Dict[str, Any], context: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    zone = context["timezone"]
    today = today_in_zone(zone, context["now"])
    return add_days(today, -1, zone), today


# ---------------------------------------------------------------------------
# Report runners
# ---------------------------------------------------------------------------


def _run_team_dashboard(
    snapshot: TrackerSnapshot, params: Dict[str, Any], context: Dict[str, Any]
) -> Dict[str, Any]:
    resolved = _dashboard_range(params, context)
    entries = snapshot.contributor_entries()
    totals = reduce_actuals(entries)
    metric = params["metric"]
    sort = params["sort"]
    direction = params["direction"]

    rows = build_rows(snapshot.contributors, entries)
    ranked = rank_leaderboard(rows, "name" if sort == "name" else metric, direction)

    summary = [
        _summary_entry("dials", "Total Dials", totals.dials),
        _summary_entry("prospects", "New Prospects", totals.prospects),
        _summary_entry("setsTotal", "Total Sets", totals.sets_total),
        _summary_entry("setsNewBiz", "New Biz Sets", totals.sets_new_biz),
        _summary_entry("setsExpansion", "Expansion Sets", totals.sets_expansion),
        _summary_entry("sqos", "SQOs", totals.sqos),
    ]
    notes = []
    if resolved.is_inverted:
        notes.append("The start date is after the end date, so no entries fall inside this range.")

    return {
        "range": resolved.as_dict(),
        "summary": summary,
        "totals": totals.as_dict(),
        "goalTotals": reduce_goals(entries).as_dict(),
        "leaderboard": {
            "metric": metric,
            "metricLabel": METRIC_LABELS[metric],
            "sort": sort,
            "direction": direction,
            "rows": with_ranks(ranked),
        },
        "daily": [
            {"date": entry_date, **day_totals.as_dict()}
            for entry_date, day_totals in reduce_by_date(entries)
        ],
        "notes": notes,
    }


def _run_manager_summary(
    snapshot: TrackerSnapshot, params: Dict[str, Any], context: Dict[str, Any]
) -> Dict[str, Any]:
    count = params.get("months") or 0
    zone = context["timezone"]
    now = context["now"]
    entries = snapshot.contributor_entries()
    team = summarize_trailing_months(count, entries, zone, now)
    per_rep = summarize_by_rep(count, snapshot.contributors, entries, zone, now)
    return {
        "months": [bucket.month_key for bucket in team],
        "team": [bucket.as_dict() for bucket in team],
        "reps": [
            {"id": rep["id"], "name": rep["name"], "months": [bucket.as_dict() for bucket in rep["months"]]}
            for rep in per_rep
        ],
    }


def _run_rep_detail(
    snapshot: TrackerSnapshot, params: Dict[str, Any], context: Dict[str, Any]
) -> Dict[str, Any]:
    rep = _require_rep(snapshot, params["rep_id"])
    zone = context["timezone"]
    end = snapshot.end or today_in_zone(zone, context["now"])
    start = add_days(end, -max(params.get("days") or 0, 0), zone)
    rep_entries = snapshot.entries_by_user.get(rep["id"], [])
    history = [entry for entry in rep_entries if entry["date"] >= start]
    lookback = params.get("lookback") or 0
    return {
        "rep": rep,
        "start": start,
        "end": end,
        "totals": reduce_actuals(history).as_dict(),
        "entries": sorted(history, key=lambda entry: entry["date"], reverse=True),
        "lookbackDays": lookback,
        "missing": find_missing_weekdays(rep_entries, end, lookback, zone),
    }


def _run_rep_standup(
    snapshot: TrackerSnapshot, params: Dict[str, Any], context: Dict[str, Any]
) -> Dict[str, Any]:
    rep = _require_rep(snapshot, params["rep_id"])
    yesterday, today = snapshot.start, snapshot.end
    by_date = {entry["date"]: entry for entry in snapshot.entries_by_user.get(rep["id"], [])}
    today_entry = by_date.get(today)
    yesterday_entry = by_date.get(yesterday)

    standards: MinimumStandards = context["standards"]
    combined = {
        "goal_dials": (today_entry or {}).get("goal_dials"),
        "goal_new_prospects": (today_entry or {}).get("goal_new_prospects"),
        "actual_dials": (yesterday_entry or {}).get("actual_dials"),
        "actual_new_prospects": (yesterday_entry or {}).get("actual_new_prospects"),
    }
    return {
        "rep": rep,
        "today": today,
        "yesterday": yesterday,
        "todayEntry": today_entry,
        "yesterdayEntry": yesterday_entry,
        "standards": {"dials": standards.dials, "prospects": standards.prospects},
        "flags": evaluate_standards(combined, standards),
    }
