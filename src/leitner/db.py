"""Database initialization and connection management."""
import sqlite3
from contextlib import contextmanager
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".leitner" / "leitner.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS folders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    parent_id INTEGER REFERENCES folders(id),
    name TEXT NOT NULL,
    depth INTEGER NOT NULL DEFAULT 0 CHECK(depth BETWEEN 0 AND 10),
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS decks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    folder_id INTEGER REFERENCES folders(id),
    name TEXT NOT NULL,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    deck_id INTEGER NOT NULL REFERENCES decks(id),
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    created_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS srs_settings (
    user_id INTEGER PRIMARY KEY REFERENCES users(id),
    review_order TEXT NOT NULL,
    queue_mix TEXT NOT NULL,
    forgotten_card_action TEXT NOT NULL,
    move_down_boxes INTEGER NOT NULL,
    new_cards_per_day INTEGER NOT NULL,
    max_reviews_per_day INTEGER NOT NULL,
    timezone TEXT NOT NULL DEFAULT 'UTC',
    notification_enabled INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS card_box_positions (
    user_id INTEGER NOT NULL REFERENCES users(id),
    card_id INTEGER NOT NULL REFERENCES cards(id) ON DELETE CASCADE,
    current_box INTEGER NOT NULL CHECK(current_box >= 1),
    interval_days INTEGER NOT NULL CHECK(interval_days >= 0),
    due_date TEXT NOT NULL,
    review_count INTEGER NOT NULL DEFAULT 0 CHECK(review_count >= 0),
    lapse_count INTEGER NOT NULL DEFAULT 0 CHECK(lapse_count >= 0),
    last_reviewed_at TEXT,
    PRIMARY KEY (user_id, card_id)
);

CREATE INDEX IF NOT EXISTS idx_positions_user_due
    ON card_box_positions (user_id, due_date, current_box);

CREATE TABLE IF NOT EXISTS rating_events (
    user_id INTEGER PRIMARY KEY REFERENCES users(id),
    card_id INTEGER NOT NULL REFERENCES cards(id) ON DELETE CASCADE,
    rating TEXT NOT NULL,
    previous_box INTEGER NOT NULL,
    previous_interval_days INTEGER NOT NULL,
    previous_due_date TEXT NOT NULL,
    previous_review_count INTEGER NOT NULL,
    previous_lapse_count INTEGER NOT NULL,
    previous_last_reviewed_at TEXT,
    previous_existed INTEGER NOT NULL,
    counter_day TEXT NOT NULL,
    counter_kind TEXT NOT NULL CHECK(counter_kind IN ('NEW', 'REVIEW')),
    applied_at TEXT NOT NULL,
    review_log_id INTEGER
);

CREATE TABLE IF NOT EXISTS daily_counters (
    user_id INTEGER NOT NULL REFERENCES users(id),
    day TEXT NOT NULL,
    new_cards_consumed INTEGER NOT NULL DEFAULT 0 CHECK(new_cards_consumed >= 0),
    reviews_consumed INTEGER NOT NULL DEFAULT 0 CHECK(reviews_consumed >= 0),
    PRIMARY KEY (user_id, day)
);

CREATE TABLE IF NOT EXISTS review_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    card_id INTEGER NOT NULL REFERENCES cards(id) ON DELETE CASCADE,
    rating TEXT NOT NULL CHECK(rating IN ('AGAIN', 'HARD', 'GOOD', 'EASY')),
    previous_box INTEGER NOT NULL,
    new_box INTEGER NOT NULL,
    interval_days INTEGER NOT NULL,
    due_date TEXT NOT NULL,
    review_day TEXT NOT NULL,
    reviewed_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_review_log_user_day ON review_log (user_id, review_day);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path, timeout=5)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


@contextmanager
def transaction(db_path: str = DEFAULT_DB_PATH):
    """Yield a connection inside a write transaction.

    BEGIN IMMEDIATE takes SQLite's write lock up front, so two writers
    never interleave their reads and writes. Everything done on the
    connection is committed together or rolled back together.
    """
    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
