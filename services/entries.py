"""Storage helpers for reps and their daily stand-up entries."""

from __future__ import annotations

import logging
import math
import sqlite3
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .dates import parse_iso_date

LOGGER = logging.getLogger(__name__)

ROLE_REP = "SDR"
ROLE_MANAGER = "MANAGER"
ROLES = (ROLE_REP, ROLE_MANAGER)


class EntryValidationError(Exception):
    """Raised when rep or entry validation fails."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Entry validation failed")
        self.errors = errors


class DuplicateRepError(ValueError):
    """Raised when a rep name is already taken."""


@dataclass
class FieldDefinition:
    """A single editable column of a daily entry."""

    name: str
    field_type: str = "integer"
    label: str = ""

    def clean(self, value: Any) -> Any:
        """Normalise form input for this column.

        Integers that are blank, negative or not numbers are stored as null;
        fractional values are floored. Blank text is stored as null.
        """
        if value is None:
            return None
        if self.field_type == "integer":
            if isinstance(value, bool):
                return None
            text = str(value).strip()
            if not text:
                return None
            try:
                number = float(text)
            except ValueError:
                return None
            if not math.isfinite(number) or number < 0:
                return None
            return int(math.floor(number))
        text = str(value).strip()
        return text or None


GOAL_SECTION: Dict[str, FieldDefinition] = {
    "goal_dials": FieldDefinition("goal_dials", label="Dials"),
    "goal_new_prospects": FieldDefinition("goal_new_prospects", label="New Prospects"),
    "goal_sets_total": FieldDefinition("goal_sets_total", label="Total Sets"),
    "goal_sets_new_biz": FieldDefinition("goal_sets_new_biz", label="New Biz Sets"),
    "goal_sets_expansion": FieldDefinition("goal_sets_expansion", label="Expansion Sets"),
    "goal_sqos": FieldDefinition("goal_sqos", label="SQOs"),
    "focus_text": FieldDefinition("focus_text", field_type="text", label="Focus"),
}

ACTUAL_SECTION: Dict[str, FieldDefinition] = {
    "actual_dials": FieldDefinition("actual_dials", label="Dials"),
    "actual_new_prospects": FieldDefinition("actual_new_prospects", label="New Prospects"),
    "actual_sets_new_biz": FieldDefinition("actual_sets_new_biz", label="New Biz Sets"),
    "actual_sets_expansion": FieldDefinition("actual_sets_expansion", label="Expansion Sets"),
    "actual_sqos": FieldDefinition("actual_sqos", label="SQOs"),
    "wins": FieldDefinition("wins", field_type="text", label="Wins"),
    "blockers": FieldDefinition("blockers", field_type="text", label="Blockers"),
    "notes": FieldDefinition("notes", field_type="text", label="Notes"),
}

SECTIONS = {"goals": GOAL_SECTION, "actuals": ACTUAL_SECTION}


def _row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {key: row[key] for key in row.keys()}


def _clean_date(value: Any) -> str:
    try:
        return parse_iso_date(value).isoformat()
    except ValueError as exc:
        raise EntryValidationError({"date": str(exc)})


class EntryService:
    """CRUD operations over an explicitly supplied SQLite connection."""

    # ------------------------------------------------------------------
    # Reps
    # ------------------------------------------------------------------
    def create_rep(self, conn: sqlite3.Connection, name: Any, role: str = ROLE_REP) -> Dict[str, Any]:
        clean_name = str(name or "").strip()
        errors: Dict[str, str] = {}
        if not clean_name:
            errors["name"] = "Field is required"
        if role not in ROLES:
            errors["role"] = f"Expected one of {list(ROLES)}"
        if errors:
            raise EntryValidationError(errors)
        rep_id = uuid.uuid4().hex
        try:
            conn.execute(
                "INSERT INTO users (id, name, role) VALUES (?, ?, ?)",
                (rep_id, clean_name, role),
            )
        except sqlite3.IntegrityError:
            raise DuplicateRepError(f"A rep named '{clean_name}' already exists")
        LOGGER.info("Created %s %s (%s)", role, clean_name, rep_id)
        return {"id": rep_id, "name": clean_name, "role": role}

    def list_reps(self, conn: sqlite3.Connection, role: Optional[str] = None) -> List[Dict[str, Any]]:
        if role:
            cursor = conn.execute(
                "SELECT id, name, role FROM users WHERE role = ? ORDER BY name ASC", (role,)
            )
        else:
            cursor = conn.execute("SELECT id, name, role FROM users ORDER BY name ASC")
        return [_row_to_dict(row) for row in cursor.fetchall()]

    def get_rep(self, conn: sqlite3.Connection, rep_id: str) -> Optional[Dict[str, Any]]:
        cursor = conn.execute("SELECT id, name, role FROM users WHERE id = ?", (rep_id,))
        return _row_to_dict(cursor.fetchone())

    def find_rep(self, conn: sqlite3.Connection, id_or_name: str) -> Optional[Dict[str, Any]]:
        """Look a rep up by id, falling back to an exact name match."""
        rep = self.get_rep(conn, id_or_name)
        if rep is None:
            cursor = conn.execute(
                "SELECT id, name, role FROM users WHERE name = ?", (id_or_name,)
            )
            rep = _row_to_dict(cursor.fetchone())
        return rep

    def delete_rep(self, conn: sqlite3.Connection, rep_id: str) -> None:
        cursor = conn.execute("DELETE FROM users WHERE id = ?", (rep_id,))
        if cursor.rowcount == 0:
            raise KeyError(f"Rep {rep_id} not found")
        # Connections opened without the foreign_keys pragma do not cascade
        conn.execute("DELETE FROM daily_entries WHERE user_id = ?", (rep_id,))
        LOGGER.info("Deleted rep %s and their entries", rep_id)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    def get_entry(self, conn: sqlite3.Connection, user_id: str, entry_date: Any) -> Optional[Dict[str, Any]]:
        cursor = conn.execute(
            "SELECT * FROM daily_entries WHERE user_id = ? AND date = ?",
            (user_id, _clean_date(entry_date)),
        )
        return _row_to_dict(cursor.fetchone())

    def save_section(
        self,
        conn: sqlite3.Connection,
        section: str,
        user_id: str,
        entry_date: Any,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Upsert one section of the entry keyed by ``(user_id, entry_date)``.

        Only the section's own columns are written; the other section is left
        untouched on an existing entry.
        """
        if section not in SECTIONS:
            raise KeyError(f"Unknown entry section '{section}'")
        clean_date = _clean_date(entry_date)
        if self.get_rep(conn, user_id) is None:
            raise KeyError(f"Rep {user_id} not found")

        fields = SECTIONS[section]
        values = {name: definition.clean(payload.get(name)) for name, definition in fields.items()}
        columns = list(values)
        assignments = ", ".join(f"{column} = excluded.{column}" for column in columns)
        conn.execute(
            f"""
            INSERT INTO daily_entries (id, user_id, date, {", ".join(columns)})
            VALUES (?, ?, ?, {", ".join("?" for _ in columns)})
            ON CONFLICT(user_id, date) DO UPDATE SET {assignments}
            """,
            (uuid.uuid4().hex, user_id, clean_date, *[values[column] for column in columns]),
        )
        return self.get_entry(conn, user_id, clean_date)

    def save_goals(self, conn: sqlite3.Connection, user_id: str, entry_date: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.save_section(conn, "goals", user_id, entry_date, payload)

    def save_actuals(self, conn: sqlite3.Connection, user_id: str, entry_date: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.save_section(conn, "actuals", user_id, entry_date, payload)

    def list_entries(
        self,
        conn: sqlite3.Connection,
        user_id: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        *,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if user_id:
            clauses.append("user_id = ?")
            params.append(user_id)
        if start:
            clauses.append("date >= ?")
            params.append(start)
        if end:
            clauses.append("date <= ?")
            params.append(end)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order = "DESC" if descending else "ASC"
        cursor = conn.execute(
            f"SELECT * FROM daily_entries {where} ORDER BY date {order}, user_id ASC", params
        )
        return [_row_to_dict(row) for row in cursor.fetchall()]


_service_instance: Optional[EntryService] = None


def get_entry_service() -> EntryService:
    global _service_instance
    if _service_instance is None:
        _service_instance = EntryService()
    return _service_instance
