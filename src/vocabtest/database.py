import os
import sqlite3

SCHEMA = """
CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
    logger TEXT,
    level TEXT,
    message TEXT
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    token_hash TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    expires_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS word_lists (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL REFERENCES users(id),
    title TEXT NOT NULL,
    source_type TEXT NOT NULL CHECK (source_type IN ('image', 'text')),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS words (
    id TEXT PRIMARY KEY,
    word_list_id TEXT NOT NULL REFERENCES word_lists(id),
    word TEXT NOT NULL,
    meaning TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS test_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    word_list_id TEXT,
    mode TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('active', 'finished')),
    order_ids TEXT NOT NULL,
    current_index INTEGER NOT NULL DEFAULT 0,
    correct_ids TEXT NOT NULL DEFAULT '[]',
    incorrect_ids TEXT NOT NULL DEFAULT '[]',
    started_at TEXT NOT NULL,
    finished_at TEXT,
    accuracy INTEGER
);

CREATE TABLE IF NOT EXISTS test_answers (
    id TEXT PRIMARY KEY,
    test_session_id TEXT NOT NULL REFERENCES test_sessions(id),
    word_id TEXT NOT NULL,
    correct INTEGER NOT NULL,
    answered_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS wrong_words (
    user_id TEXT NOT NULL REFERENCES users(id),
    word_id TEXT NOT NULL REFERENCES words(id),
    word_list_id TEXT,
    scope_key TEXT NOT NULL,
    wrong_count INTEGER NOT NULL CHECK (wrong_count >= 1),
    last_wrong_at TEXT NOT NULL,
    UNIQUE (user_id, word_id, scope_key)
);

CREATE INDEX IF NOT EXISTS idx_words_list ON words (word_list_id);
CREATE INDEX IF NOT EXISTS idx_sessions_user ON test_sessions (user_id, status);
CREATE INDEX IF NOT EXISTS idx_answers_session ON test_answers (test_session_id);
"""


def get_db_connection(db_path: str) -> sqlite3.Connection:
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str) -> None:
    """Creates the database file and every table the service needs."""
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    conn = get_db_connection(db_path)
    try:
        with conn:
            conn.executescript(SCHEMA)
    finally:
        conn.close()
