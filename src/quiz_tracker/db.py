"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

from quiz_tracker.config import DEFAULT_DB_PATH

DEFAULT_TIMEOUT = 5.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL DEFAULT '',
    display_name TEXT NOT NULL DEFAULT '',
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS topics (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS questions (
    id TEXT NOT NULL,
    topic_id TEXT NOT NULL REFERENCES topics(id),
    text TEXT NOT NULL,
    options TEXT NOT NULL DEFAULT '[]',
    answer TEXT NOT NULL,
    explanation TEXT NOT NULL DEFAULT '',
    position INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (topic_id, id)
);

CREATE TABLE IF NOT EXISTS topic_progress (
    user_id TEXT NOT NULL,
    topic_id TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT,
    PRIMARY KEY (user_id, topic_id)
);

CREATE TABLE IF NOT EXISTS progress_entries (
    user_id TEXT NOT NULL,
    topic_id TEXT NOT NULL,
    question_id TEXT NOT NULL,
    bucket TEXT NOT NULL CHECK (bucket IN ('mistake', 'mastered', 'favorite')),
    PRIMARY KEY (user_id, topic_id, question_id, bucket),
    FOREIGN KEY (user_id, topic_id) REFERENCES topic_progress(user_id, topic_id) ON DELETE CASCADE
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH, timeout: float = DEFAULT_TIMEOUT) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled.

    `timeout` bounds how long a statement waits on a locked database before
    sqlite raises `OperationalError`.
    """
    conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.close()
