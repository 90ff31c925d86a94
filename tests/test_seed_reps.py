import pathlib
import sqlite3
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
for path in (PROJECT_ROOT, PROJECT_ROOT / 'scripts'):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import seed_reps
from database import ensure_schema
from services.entries import get_entry_service


def _memory_db():
    conn = sqlite3.connect(':memory:')
    conn.row_factory = sqlite3.Row
    ensure_schema(conn)
    return conn


def test_seed_creates_reps_and_manager_once():
    conn = _memory_db()
    try:
        assert seed_reps.seed(conn, ['Jean', 'Damon'], 'Manager') == 3
        assert seed_reps.seed(conn, ['Jean', 'Kealani'], 'Manager') == 1

        service = get_entry_service()
        reps = [rep['name'] for rep in service.list_reps(conn, role='SDR')]
        assert reps == ['Damon', 'Jean', 'Kealani']
        managers = service.list_reps(conn, role='MANAGER')
        assert [rep['name'] for rep in managers] == ['Manager']
    finally:
        conn.close()


def test_default_team_names():
    assert seed_reps.DEFAULT_REPS == ('Jean', 'Kealani', 'Damon', 'SDR 4', 'SDR 5')
