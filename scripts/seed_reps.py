"""Seed the default team of reps and the manager account."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from database import get_db_connection, init_db  # noqa: E402
from services.entries import (  # noqa: E402
    ROLE_MANAGER,
    ROLE_REP,
    DuplicateRepError,
    get_entry_service,
)

DEFAULT_REPS = ("Jean", "Kealani", "Damon", "SDR 4", "SDR 5")
DEFAULT_MANAGER = "Manager"


def seed(conn, rep_names: Sequence[str], manager_name: str) -> int:
    """Create any missing reps; existing names are left untouched."""
    service = get_entry_service()
    created = 0
    for name, role in [(name, ROLE_REP) for name in rep_names] + [(manager_name, ROLE_MANAGER)]:
        try:
            service.create_rep(conn, name, role)
            created += 1
        except DuplicateRepError:
            continue
    return created


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the activity tracker with the default team.")
    parser.add_argument(
        "names",
        nargs="*",
        default=list(DEFAULT_REPS),
        help="Rep names to create (default: the standard five-person team)",
    )
    parser.add_argument("--manager", default=DEFAULT_MANAGER, help="Manager account name")
    args = parser.parse_args(argv)

    init_db()
    conn = get_db_connection()
    try:
        created = seed(conn, args.names, args.manager)
        conn.commit()
    finally:
        conn.close()
    print(f"Seeded {created} new account(s).")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI behavior
    raise SystemExit(main())
