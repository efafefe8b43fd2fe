"""
Versioned schema migrations for the session store.

The applied version lives in ``PRAGMA user_version``; every migration above
it is applied in order, each in its own transaction.
"""

import sqlite3
import logging

from ..types.errors import StoreUnavailableError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


MIGRATIONS: list[tuple[int, str, list[str]]] = [
    (1, "sessions and messages", [
        """
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            agent_name TEXT NOT NULL,
            name TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            metadata TEXT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            thread_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
            role TEXT NOT NULL,
            content TEXT,
            from_agent TEXT,
            tool_calls TEXT,
            tool_results TEXT,
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_messages_thread ON messages(thread_id)",
        "CREATE INDEX IF NOT EXISTS idx_sessions_agent ON sessions(agent_name)",
    ]),
    (2, "session sources", [
        "ALTER TABLE sessions ADD COLUMN source TEXT NOT NULL DEFAULT 'api'",
        "ALTER TABLE sessions ADD COLUMN last_message_source TEXT",
        "ALTER TABLE messages ADD COLUMN source TEXT",
    ]),
    (3, "thread lineage", [
        "ALTER TABLE sessions ADD COLUMN parent_thread_id TEXT REFERENCES sessions(id)",
        "ALTER TABLE sessions ADD COLUMN parent_message_id INTEGER",
        "ALTER TABLE sessions ADD COLUMN parent_agent TEXT",
        "ALTER TABLE sessions ADD COLUMN thread_type TEXT NOT NULL DEFAULT 'root'",
        "CREATE INDEX IF NOT EXISTS idx_sessions_parent ON sessions(parent_thread_id)",
    ]),
    (4, "message ordering and usage", [
        "ALTER TABLE messages ADD COLUMN sequence_id INTEGER NOT NULL DEFAULT 0",
        "ALTER TABLE messages ADD COLUMN usage TEXT",
        # backfill existing rows before the uniqueness constraint
        """
        UPDATE messages SET sequence_id = (
            SELECT COUNT(*) FROM messages AS m
            WHERE m.thread_id = messages.thread_id AND m.id <= messages.id
        )
        """,
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_sequence ON messages(thread_id, sequence_id)",
    ]),
    (5, "event log", [
        """
        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            thread_id TEXT,
            timestamp TEXT NOT NULL,
            from_name TEXT NOT NULL,
            to_name TEXT NOT NULL,
            message TEXT,
            summary TEXT
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp)",
        "CREATE INDEX IF NOT EXISTS idx_events_thread ON events(thread_id)",
    ]),
    (6, "environment data", [
        """
        CREATE TABLE IF NOT EXISTS env_data (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            root_thread_id TEXT NOT NULL,
            key TEXT NOT NULL,
            short_description TEXT NOT NULL,
            value TEXT,
            stored_by TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(root_thread_id, key)
        )
        """,
    ]),
]

SCHEMA_VERSION = MIGRATIONS[-1][0]


def get_schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0] or 0


def apply_migrations(conn: sqlite3.Connection) -> int:
    """Bring the schema up to ``SCHEMA_VERSION``.

    Returns:
        The number of migrations applied
    """
    current = get_schema_version(conn)
    if current > SCHEMA_VERSION:
        raise StoreUnavailableError(
            f"Database schema version {current} is newer than supported version {SCHEMA_VERSION}"
        )

    applied = 0
    for version, description, statements in MIGRATIONS:
        if version <= current:
            continue
        try:
            for statement in statements:
                conn.execute(statement)
            # PRAGMA does not accept bound parameters
            conn.execute(f"PRAGMA user_version = {int(version)}")
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreUnavailableError(
                f"Migration {version} ({description}) failed: {e}"
            ) from e
        logger.info(f"Applied session store migration {version}: {description}")
        applied += 1

    return applied
