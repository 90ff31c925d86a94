import pathlib
import sqlite3
import sys
import unittest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from database import ensure_schema
from services.entries import (
    ROLE_MANAGER,
    DuplicateRepError,
    EntryService,
    EntryValidationError,
    FieldDefinition,
)
from services.snapshot import TrackerSnapshot


class EntryServiceTests(unittest.TestCase):
    def setUp(self):
        self.conn = sqlite3.connect(':memory:')
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON;")
        ensure_schema(self.conn)
        self.service = EntryService()
        self.ava = self.service.create_rep(self.conn, "  Ava  ")
        self.jay = self.service.create_rep(self.conn, "Jay")

    def tearDown(self):
        self.conn.close()

    def test_create_rep_trims_name_and_defaults_role(self):
        self.assertEqual(self.ava["name"], "Ava")
        self.assertEqual(self.ava["role"], "SDR")
        self.assertEqual([rep["name"] for rep in self.service.list_reps(self.conn)], ["Ava", "Jay"])

    def test_blank_name_is_rejected(self):
        with self.assertRaises(EntryValidationError) as ctx:
            self.service.create_rep(self.conn, "   ")
        self.assertIn("name", ctx.exception.errors)

    def test_duplicate_name_is_rejected(self):
        with self.assertRaises(DuplicateRepError):
            self.service.create_rep(self.conn, "Ava")

    def test_list_reps_filters_by_role(self):
        self.service.create_rep(self.conn, "Boss", ROLE_MANAGER)
        names = [rep["name"] for rep in self.service.list_reps(self.conn, role="SDR")]
        self.assertEqual(names, ["Ava", "Jay"])

    def test_find_rep_by_id_then_name(self):
        self.assertEqual(self.service.find_rep(self.conn, self.ava["id"])["name"], "Ava")
        self.assertEqual(self.service.find_rep(self.conn, "Jay")["id"], self.jay["id"])
        self.assertIsNone(self.service.find_rep(self.conn, "Nobody"))

    def test_goals_and_actuals_upsert_the_same_entry(self):
        self.service.save_goals(
            self.conn,
            self.ava["id"],
            "2026-03-02",
            {"goal_dials": "80", "goal_sets_new_biz": "2", "focus_text": "  Renewals  "},
        )
        entry = self.service.save_actuals(
            self.conn,
            self.ava["id"],
            "2026-03-02",
            {"actual_dials": 75, "actual_sets_expansion": "1", "wins": ""},
        )
        self.assertEqual(entry["goal_dials"], 80)
        self.assertEqual(entry["goal_sets_new_biz"], 2)
        self.assertEqual(entry["focus_text"], "Renewals")
        self.assertEqual(entry["actual_dials"], 75)
        self.assertEqual(entry["actual_sets_expansion"], 1)
        self.assertIsNone(entry["wins"])
        count = self.conn.execute("SELECT COUNT(*) FROM daily_entries").fetchone()[0]
        self.assertEqual(count, 1)

    def test_resaving_a_section_overwrites_only_that_section(self):
        self.service.save_goals(self.conn, self.ava["id"], "2026-03-02", {"goal_dials": 80})
        self.service.save_actuals(self.conn, self.ava["id"], "2026-03-02", {"actual_dials": 60})
        entry = self.service.save_goals(self.conn, self.ava["id"], "2026-03-02", {"goal_dials": 90})
        self.assertEqual(entry["goal_dials"], 90)
        self.assertEqual(entry["actual_dials"], 60)

    def test_invalid_date_is_a_validation_error(self):
        with self.assertRaises(EntryValidationError) as ctx:
            self.service.save_goals(self.conn, self.ava["id"], "2026-02-30", {})
        self.assertIn("date", ctx.exception.errors)

    def test_unknown_rep_raises_key_error(self):
        with self.assertRaises(KeyError):
            self.service.save_actuals(self.conn, "missing", "2026-03-02", {})

    def test_delete_rep_cascades_to_entries(self):
        self.service.save_goals(self.conn, self.ava["id"], "2026-03-02", {"goal_dials": 80})
        self.service.delete_rep(self.conn, self.ava["id"])
        self.assertIsNone(self.service.get_rep(self.conn, self.ava["id"]))
        self.assertEqual(self.service.list_entries(self.conn, user_id=self.ava["id"]), [])
        with self.assertRaises(KeyError):
            self.service.delete_rep(self.conn, self.ava["id"])

    def test_list_entries_filters_and_orders(self):
        for day in ("2026-03-03", "2026-03-01", "2026-03-02"):
            self.service.save_actuals(self.conn, self.ava["id"], day, {"actual_dials": 1})
        self.service.save_actuals(self.conn, self.jay["id"], "2026-03-02", {"actual_dials": 1})
        dates = [entry["date"] for entry in self.service.list_entries(self.conn, self.ava["id"], "2026-03-02")]
        self.assertEqual(dates, ["2026-03-02", "2026-03-03"])
        newest_first = self.service.list_entries(self.conn, self.ava["id"], descending=True)
        self.assertEqual([entry["date"] for entry in newest_first], ["2026-03-03", "2026-03-02", "2026-03-01"])

    def test_snapshot_windows_entries_and_groups_by_user(self):
        self.service.create_rep(self.conn, "Boss", ROLE_MANAGER)
        self.service.save_actuals(self.conn, self.ava["id"], "2026-03-01", {"actual_dials": 1})
        self.service.save_actuals(self.conn, self.ava["id"], "2026-03-05", {"actual_dials": 1})
        self.service.save_actuals(self.conn, self.jay["id"], "2026-03-05", {"actual_dials": 1})
        snapshot = TrackerSnapshot.build(self.conn, start="2026-03-02", end="2026-03-31")
        self.assertEqual([user["name"] for user in snapshot.contributors], ["Ava", "Jay"])
        self.assertEqual(len(snapshot.entries), 2)
        self.assertEqual(len(snapshot.entries_by_user[self.ava["id"]]), 1)


class FieldDefinitionTests(unittest.TestCase):
    def test_integer_cleaning_matches_form_semantics(self):
        definition = FieldDefinition("actual_dials")
        self.assertEqual(definition.clean("12"), 12)
        self.assertEqual(definition.clean(" 7.9 "), 7)
        self.assertEqual(definition.clean(0), 0)
        self.assertIsNone(definition.clean(""))
        self.assertIsNone(definition.clean("-3"))
        self.assertIsNone(definition.clean("abc"))
        self.assertIsNone(definition.clean("inf"))
        self.assertIsNone(definition.clean(None))

    def test_text_cleaning_trims_and_nulls_blank(self):
        definition = FieldDefinition("notes", field_type="text")
        self.assertEqual(definition.clean("  call back  "), "call back")
        self.assertIsNone(definition.clean("   "))


if __name__ == "__main__":
    unittest.main()
