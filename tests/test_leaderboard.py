import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services.leaderboard import (
    LeaderboardRow,
    build_rows,
    rank_leaderboard,
    toggle_direction,
    with_ranks,
)
from services.metrics import MetricTotals


def _row(row_id, name, **totals):
    return LeaderboardRow(id=row_id, name=name, totals=MetricTotals(**totals))


def test_ranks_by_dials_descending():
    rows = build_rows(
        [{"id": "r1", "name": "Ava"}, {"id": "r2", "name": "Jay"}],
        [
            {"user_id": "r2", "date": "2026-03-02", "actual_dials": 30},
            {"user_id": "r1", "date": "2026-03-02", "actual_dials": 50},
        ],
    )
    ranked = with_ranks(rank_leaderboard(rows, "dials", "desc"))
    assert [(row["id"], row["rank"]) for row in ranked] == [("r1", 1), ("r2", 2)]


def test_ties_keep_input_order_in_both_directions():
    rows = [_row("a", "A", sqos=3), _row("b", "B", sqos=3), _row("c", "C", sqos=5)]
    assert [row.id for row in rank_leaderboard(rows, "sqos", "desc")] == ["c", "a", "b"]
    assert [row.id for row in rank_leaderboard(rows, "sqos", "asc")] == ["a", "b", "c"]


def test_tied_values_receive_consecutive_ranks():
    rows = [_row("a", "A", dials=10), _row("b", "B", dials=10)]
    ranked = with_ranks(rank_leaderboard(rows))
    assert [row["rank"] for row in ranked] == [1, 2]


def test_name_sort_is_case_insensitive():
    rows = [_row("1", "damon"), _row("2", "Ava"), _row("3", "Kealani")]
    assert [row.name for row in rank_leaderboard(rows, "name", "asc")] == ["Ava", "damon", "Kealani"]
    assert [row.name for row in rank_leaderboard(rows, "name", "desc")] == ["Kealani", "damon", "Ava"]


def test_name_sort_places_accented_names_by_base_letter():
    rows = [_row("1", "Zed"), _row("2", "Émile"), _row("3", "adam"), _row("4", "Emma")]
    assert [row.name for row in rank_leaderboard(rows, "name", "asc")] == ["adam", "Émile", "Emma", "Zed"]
    assert [row.name for row in rank_leaderboard(rows, "name", "desc")] == ["Zed", "Emma", "Émile", "adam"]


def test_name_sort_breaks_accent_ties_deterministically():
    rows = [_row("1", "José"), _row("2", "Jose")]
    assert [row.id for row in rank_leaderboard(rows, "name", "asc")] == ["2", "1"]


def test_sets_total_metric_uses_derived_total():
    rows = build_rows(
        [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}],
        [
            {"user_id": "a", "actual_sets_new_biz": 1, "actual_sets_expansion": 4},
            {"user_id": "b", "actual_sets_new_biz": 3, "goal_sets_total": 50},
        ],
    )
    assert [row.id for row in rank_leaderboard(rows, "setsTotal")] == ["a", "b"]


@pytest.mark.parametrize("sort_key, direction", [("bogus", "desc"), ("dials", "sideways")])
def test_unknown_inputs_fall_back_to_dials_descending(sort_key, direction):
    rows = [_row("low", "Low", dials=1), _row("high", "High", dials=9)]
    assert [row.id for row in rank_leaderboard(rows, sort_key, direction)] == ["high", "low"]


def test_reps_without_entries_score_zero():
    rows = build_rows([{"id": "idle", "name": "Idle"}], [])
    assert rows[0].as_dict() == {
        "id": "idle",
        "name": "Idle",
        "dials": 0,
        "prospects": 0,
        "setsNewBiz": 0,
        "setsExpansion": 0,
        "setsTotal": 0,
        "sqos": 0,
    }


def test_empty_rows():
    assert rank_leaderboard([], "dials") == []
    assert with_ranks([]) == []


def test_toggle_direction():
    assert toggle_direction("metric", "metric", "desc") == "asc"
    assert toggle_direction("metric", "metric", "asc") == "desc"
    assert toggle_direction("metric", "name", "desc") == "desc"
