"""Read-only bundles of reps and entries handed to the reporting core."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .dates import DEFAULT_TIME_ZONE
from .entries import ROLE_REP


def _table_exists(conn: sqlite3.Connection, table_name: str) -> bool:
    """Return ``True`` if the table exists in the connected database."""

    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,),
    )
    return cursor.fetchone() is not None


def _rows_to_dicts(rows: Iterable[sqlite3.Row]) -> List[Dict[str, Any]]:
    """Normalise sqlite rows to plain dictionaries."""

    normalised: List[Dict[str, Any]] = []
    for row in rows:
        if isinstance(row, sqlite3.Row):
            normalised.append({key: row[key] for key in row.keys()})
        else:
            normalised.append(dict(row))
    return normalised


@dataclass
class TrackerSnapshot:
    """Reps and their entries within an optional date window.

    Snapshots are fetched once and never written back; every report computes
    over the lists held here. Missing tables are treated as empty datasets.
    """

    timezone: str = DEFAULT_TIME_ZONE
    start: Optional[str] = None
    end: Optional[str] = None
    users: List[Dict[str, Any]] = field(default_factory=list)
    entries: List[Dict[str, Any]] = field(default_factory=list)

    _entries_by_user: Optional[Dict[str, List[Dict[str, Any]]]] = field(
        init=False, default=None, repr=False
    )

    @classmethod
    def build(
        cls,
        conn: sqlite3.Connection,
        *,
        start: Optional[str] = None,
        end: Optional[str] = None,
        timezone: str = DEFAULT_TIME_ZONE,
    ) -> "TrackerSnapshot":
        """Assemble a snapshot from the underlying SQLite database."""

        snapshot = cls(timezone=timezone, start=start, end=end)
        if _table_exists(conn, "users"):
            cursor = conn.execute("SELECT id, name, role FROM users ORDER BY name ASC")
            snapshot.users = _rows_to_dicts(cursor.fetchall())
        if _table_exists(conn, "daily_entries"):
            clauses: List[str] = []
            params: List[Any] = []
            if start:
                clauses.append("date >= ?")
                params.append(start)
            if end:
                clauses.append("date <= ?")
                params.append(end)
            where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
            cursor = conn.execute(
                f"SELECT * FROM daily_entries{where} ORDER BY date ASC", params
            )
            snapshot.entries = _rows_to_dicts(cursor.fetchall())
        return snapshot

    @property
    def contributors(self) -> List[Dict[str, Any]]:
        return [user for user in self.users if user.get("role") == ROLE_REP]

    @property
    def entries_by_user(self) -> Dict[str, List[Dict[str, Any]]]:
        if self._entries_by_user is None:
            grouped: Dict[str, List[Dict[str, Any]]] = {}
            for entry in self.entries:
                grouped.setdefault(str(entry.get("user_id")), []).append(entry)
            self._entries_by_user = grouped
        return self._entries_by_user

    def user(self, user_id: str) -> Optional[Dict[str, Any]]:
        for candidate in self.users:
            if candidate.get("id") == user_id:
                return candidate
        return None

    def contributor_entries(self) -> List[Dict[str, Any]]:
        """Entries owned by contributors, in date order."""
        ids = {user["id"] for user in self.contributors}
        return [entry for entry in self.entries if entry.get("user_id") in ids]
