import sqlite3
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from data_paths import DATA_ROOT, ensure_data_root

DATA_DIR = DATA_ROOT
DATABASE_FILE = DATA_DIR / 'activity_tracker.db'

GOAL_COLUMNS = (
    'goal_dials',
    'goal_new_prospects',
    'goal_sets_total',
    'goal_sets_new_biz',
    'goal_sets_expansion',
    'goal_sqos',
)
ACTUAL_COLUMNS = (
    'actual_dials',
    'actual_new_prospects',
    'actual_sets_new_biz',
    'actual_sets_expansion',
    'actual_sqos',
)
TEXT_COLUMNS = ('focus_text', 'wins', 'blockers', 'notes')


def get_db_connection():
    """Establishes a connection to the SQLite database."""
    ensure_data_root()
    conn = sqlite3.connect(str(DATABASE_FILE), timeout=30.0, isolation_level='DEFERRED')
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA foreign_keys=ON;")
    except sqlite3.Error as e:
        logger.warning(f"Could not set PRAGMA settings: {e}")
    conn.row_factory = sqlite3.Row
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the users and daily_entries tables on ``conn``."""
    cursor = conn.cursor()
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY NOT NULL,
            name TEXT NOT NULL UNIQUE,
            role TEXT NOT NULL DEFAULT 'SDR',
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        );
    """)

    integer_columns = ",\n            ".join(f"{column} INTEGER" for column in GOAL_COLUMNS + ACTUAL_COLUMNS)
    text_columns = ",\n            ".join(f"{column} TEXT" for column in TEXT_COLUMNS)
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS daily_entries (
            id TEXT PRIMARY KEY NOT NULL,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            date TEXT NOT NULL,
            {integer_columns},
            {text_columns},
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (user_id, date)
        );
    """)

    # Older databases predate the split new-biz/expansion columns
    cursor.execute("PRAGMA table_info(daily_entries)")
    entry_columns = {row[1] for row in cursor.fetchall()}
    for column in GOAL_COLUMNS + ACTUAL_COLUMNS:
        if column not in entry_columns:
            cursor.execute(f"ALTER TABLE daily_entries ADD COLUMN {column} INTEGER")
    for column in TEXT_COLUMNS:
        if column not in entry_columns:
            cursor.execute(f"ALTER TABLE daily_entries ADD COLUMN {column} TEXT")

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_daily_entries_date ON daily_entries(date)")
    cursor.execute(
        "CREATE TRIGGER IF NOT EXISTS update_daily_entries_updated_at AFTER UPDATE ON daily_entries "
        "FOR EACH ROW BEGIN UPDATE daily_entries SET updated_at = CURRENT_TIMESTAMP WHERE id = OLD.id; END;"
    )


def init_db():
    """Initializes the database schema."""
    conn = get_db_connection()
    try:
        ensure_schema(conn)
        conn.commit()
        logger.info("Database schema ready at %s", DATABASE_FILE)
    except sqlite3.Error as e:
        logger.error(f"Database initialization failed: {e}")
        conn.rollback()
        raise
    finally:
        conn.close()
