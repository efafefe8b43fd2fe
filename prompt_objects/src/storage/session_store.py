"""
Session store for persistent, delegation-tree-shaped conversations.

Provides thread and message CRUD, thread lineage, the thread-scoped
environment data store, usage rollups, tree export and the event log.
Uses SQLite in WAL mode; writers serialize and wait a bounded time on a
locked database rather than failing immediately.
"""

import json
import uuid
import sqlite3
import logging
import threading

from pathlib import Path
from typing import Any, Optional, Union
from datetime import datetime
from contextlib import contextmanager

from .models import Thread, StoredMessage, EnvDataEntry, StoredEvent
from .migrations import apply_migrations, get_schema_version
from .usage import empty_usage, usage_from_messages, merge_usage
from .export import render_thread_tree_markdown, render_thread_markdown, build_thread_tree_json
from ..config import settings
from ..types.agent_types import ThreadType
from ..types.errors import NotFoundError, InvalidError, StoreUnavailableError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MESSAGE_ROLES = ("user", "assistant", "tool")

# Default for update arguments that were not passed, so None can still be stored.
UNSET: Any = object()


def _now() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def _dumps(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=_to_jsonable)


def _to_jsonable(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if isinstance(obj, datetime):
        return obj.isoformat()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return str(obj)


def _as_iso(value: Union[str, datetime]) -> str:
    # fixed width so stored timestamps compare correctly as text
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.isoformat(timespec="microseconds")


class SessionStore:
    """
    Repository for threads, messages, environment data and events.

    A single connection is shared by all callers and guarded by a lock, so
    the store can be used from the event loop and from worker threads.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = ":memory:",
        busy_timeout: Optional[float] = None,
    ):
        """
        Initialize the store and apply any pending migrations.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
            busy_timeout: Seconds to wait on a locked database before failing
        """
        self.db_path = str(db_path)
        self.busy_timeout = settings.STORE_BUSY_TIMEOUT if busy_timeout is None else busy_timeout
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._open()
        self._ensure_schema()

    def _open(self):
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                self.db_path, timeout=self.busy_timeout, check_same_thread=False
            )
            conn.row_factory = sqlite3.Row
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout * 1000)}")
            conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                # WAL: readers are never blocked by the writer
                conn.execute("PRAGMA journal_mode = WAL")
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailableError(f"Could not open session store at {self.db_path}: {e}") from e
        self._conn = conn

    def _ensure_schema(self):
        with self._lock:
            applied = apply_migrations(self._conn)
        if applied:
            logger.debug(f"Session store at {self.db_path} migrated ({applied} steps)")

    @property
    def schema_version(self) -> int:
        with self._lock:
            return get_schema_version(self._conn)

    @contextmanager
    def _get_connection(self):
        """Context manager for the shared connection with transaction support."""
        with self._lock:
            conn = self._conn
            if conn is None:
                raise StoreUnavailableError("Session store is closed")
            try:
                yield conn
                conn.commit()
            except sqlite3.OperationalError as e:
                conn.rollback()
                raise StoreUnavailableError(f"Session store error: {e}") from e
            except Exception:
                conn.rollback()
                raise

    def close(self):
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ========================================================================
    # Threads
    # ========================================================================

    def create_thread(
        self,
        agent_name: str,
        name: Optional[str] = None,
        source: str = "api",
        parent_thread_id: Optional[str] = None,
        parent_message_id: Optional[int] = None,
        parent_agent: Optional[str] = None,
        thread_type: Union[ThreadType, str] = ThreadType.ROOT,
        metadata: Optional[dict] = None,
    ) -> str:
        """
        Allocate a new thread and record its lineage.

        Args:
            agent_name: The agent that owns the thread
            name: Optional display name
            source: The front end or connector that created it
            parent_thread_id: The thread this one branches from, if any
            parent_message_id: The message in the parent that triggered it
            parent_agent: The agent that created it
            thread_type: root, continuation, delegation or fork
            metadata: Arbitrary JSON-serializable data

        Returns:
            The new thread's id

        Raises:
            NotFoundError: if the parent thread does not exist
            InvalidError: for an unknown thread type
        """
        try:
            thread_type = ThreadType(thread_type)
        except ValueError as e:
            raise InvalidError(f"Unknown thread type: {thread_type}") from e

        thread_id = str(uuid.uuid4())
        now = _now()
        with self._get_connection() as conn:
            if parent_thread_id is not None:
                exists = conn.execute(
                    "SELECT 1 FROM sessions WHERE id = ?", (parent_thread_id,)
                ).fetchone()
                if exists is None:
                    raise NotFoundError(f"Parent thread {parent_thread_id} does not exist")

            conn.execute("""
                INSERT INTO sessions (
                    id, agent_name, name, source, thread_type,
                    parent_thread_id, parent_message_id, parent_agent,
                    metadata, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                thread_id, agent_name, name, source, thread_type.value,
                parent_thread_id, parent_message_id, parent_agent,
                _dumps(metadata or {}), now, now,
            ))

        logger.debug(f"Created {thread_type.value} thread {thread_id} for {agent_name}")
        return thread_id

    def get_thread(self, thread_id: Optional[str]) -> Optional[Thread]:
        if thread_id is None:
            return None
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (thread_id,)).fetchone()
        return Thread.from_row(row) if row else None

    def get_latest_thread(self, agent_name: str) -> Optional[Thread]:
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT * FROM sessions
                WHERE agent_name = ? AND thread_type = 'root'
                ORDER BY updated_at DESC LIMIT 1
            """, (agent_name,)).fetchone()
        return Thread.from_row(row) if row else None

    def get_or_create_thread(self, agent_name: str, source: str = "api") -> Thread:
        thread = self.get_latest_thread(agent_name)
        if thread is None:
            thread = self.get_thread(self.create_thread(agent_name, source=source))
        return thread

    def update_thread(
        self,
        thread_id: str,
        name: Optional[str] = None,
        last_message_source: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> bool:
        """Update a thread's name, last message source, or merge its metadata."""
        thread = self.get_thread(thread_id)
        if thread is None:
            return False

        merged = dict(thread.metadata)
        if metadata:
            merged.update(metadata)

        with self._get_connection() as conn:
            conn.execute("""
                UPDATE sessions
                SET name = ?, last_message_source = ?, metadata = ?, updated_at = ?
                WHERE id = ?
            """, (
                name if name is not None else thread.name,
                last_message_source if last_message_source is not None else thread.last_message_source,
                _dumps(merged),
                _now(),
                thread_id,
            ))
        return True

    def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread, its messages and env data, and every thread descended from it."""
        doomed = [thread_id]
        frontier = [thread_id]
        while frontier:
            current = frontier.pop()
            for child in self.child_threads(current):
                if child.id not in doomed:
                    doomed.append(child.id)
                    frontier.append(child.id)

        with self._get_connection() as conn:
            for tid in reversed(doomed):
                conn.execute("DELETE FROM messages WHERE thread_id = ?", (tid,))
                conn.execute("DELETE FROM env_data WHERE root_thread_id = ?", (tid,))
                deleted = conn.execute("DELETE FROM sessions WHERE id = ?", (tid,)).rowcount
        return deleted > 0

    def list_threads(self, agent_name: str, thread_type: Optional[str] = None) -> list[Thread]:
        query = "SELECT * FROM sessions WHERE agent_name = ?"
        params: list = [agent_name]
        if thread_type is not None:
            query += " AND thread_type = ?"
            params.append(ThreadType(thread_type).value)
        query += " ORDER BY updated_at DESC"
        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Thread.from_row(r) for r in rows]

    def list_all_threads(self, source: Optional[str] = None) -> list[Thread]:
        with self._get_connection() as conn:
            if source is None:
                rows = conn.execute("SELECT * FROM sessions ORDER BY updated_at DESC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM sessions WHERE source = ? ORDER BY updated_at DESC", (source,)
                ).fetchall()
        return [Thread.from_row(r) for r in rows]

    def child_threads(self, thread_id: str) -> list[Thread]:
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT * FROM sessions WHERE parent_thread_id = ?
                ORDER BY created_at, rowid
            """, (thread_id,)).fetchall()
        return [Thread.from_row(r) for r in rows]

    def search_threads(self, query: Optional[str], source: Optional[str] = None) -> list[Thread]:
        """Threads whose name or message content contains ``query``."""
        if not query or not query.strip():
            return []
        pattern = f"%{query.strip()}%"
        sql = """
            SELECT DISTINCT s.* FROM sessions s
            LEFT JOIN messages m ON m.thread_id = s.id
            WHERE (s.name LIKE ? OR m.content LIKE ?)
        """
        params: list = [pattern, pattern]
        if source is not None:
            sql += " AND s.source = ?"
            params.append(source)
        sql += " ORDER BY s.updated_at DESC"
        with self._get_connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Thread.from_row(r) for r in rows]

    def total_threads(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]

    # ========================================================================
    # Messages
    # ========================================================================

    def add_message(
        self,
        thread_id: str,
        role: str,
        content: Optional[str] = None,
        from_agent: Optional[str] = None,
        tool_calls: Optional[list] = None,
        tool_results: Optional[list] = None,
        usage: Optional[Any] = None,
        source: Optional[str] = None,
    ) -> int:
        """
        Append a message to a thread.

        The message gets the next sequence id of its thread, and the thread's
        ``updated_at`` is touched.

        Returns:
            The message id (global, usable as a parent_message_id)
        """
        role = str(getattr(role, "value", role))
        if role not in MESSAGE_ROLES:
            raise InvalidError(f"Unknown message role: {role}")

        now = _now()
        with self._get_connection() as conn:
            exists = conn.execute("SELECT 1 FROM sessions WHERE id = ?", (thread_id,)).fetchone()
            if exists is None:
                raise NotFoundError(f"Thread {thread_id} does not exist")

            sequence_id = conn.execute(
                "SELECT COALESCE(MAX(sequence_id), 0) + 1 FROM messages WHERE thread_id = ?",
                (thread_id,),
            ).fetchone()[0]

            cursor = conn.execute("""
                INSERT INTO messages (
                    thread_id, sequence_id, role, content, from_agent,
                    tool_calls, tool_results, usage, source, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                thread_id, sequence_id, role, content, from_agent,
                _dumps(tool_calls) if tool_calls else None,
                _dumps(tool_results) if tool_results else None,
                _dumps(usage),
                source, now,
            ))

            if source is not None:
                conn.execute(
                    "UPDATE sessions SET updated_at = ?, last_message_source = ? WHERE id = ?",
                    (now, source, thread_id),
                )
            else:
                conn.execute("UPDATE sessions SET updated_at = ? WHERE id = ?", (now, thread_id))

            return cursor.lastrowid

    def get_messages(self, thread_id: str) -> list[StoredMessage]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE thread_id = ? ORDER BY sequence_id", (thread_id,)
            ).fetchall()
        return [StoredMessage.from_row(r) for r in rows]

    def get_message(self, message_id: int) -> Optional[StoredMessage]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
        return StoredMessage.from_row(row) if row else None

    def message_count(self, thread_id: str) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM messages WHERE thread_id = ?", (thread_id,)
            ).fetchone()[0]

    def clear_messages(self, thread_id: str) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM messages WHERE thread_id = ?", (thread_id,))
            conn.execute("UPDATE sessions SET updated_at = ? WHERE id = ?", (_now(), thread_id))
            return cursor.rowcount

    def total_messages(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]

    # ========================================================================
    # Lineage
    # ========================================================================

    def get_thread_lineage(self, thread_id: str) -> list[Thread]:
        """The ancestor path of a thread, root first, ending at the thread."""
        lineage: list[Thread] = []
        seen: set[str] = set()
        current = self.get_thread(thread_id)
        while current is not None and current.id not in seen:
            lineage.append(current)
            seen.add(current.id)
            current = self.get_thread(current.parent_thread_id)
        lineage.reverse()
        return lineage

    def resolve_root_thread(self, thread_id: Optional[str]) -> Optional[str]:
        """The id of the top-most ancestor; the scope key for environment data."""
        if thread_id is None:
            return None
        lineage = self.get_thread_lineage(thread_id)
        return lineage[0].id if lineage else None

    def get_thread_tree(self, thread_id: str, max_depth: Optional[int] = None) -> Optional[dict]:
        """
        Assemble a thread and its descendants.

        Each node is ``{"thread", "message_count", "children"}``. Nodes at
        ``max_depth`` are not expanded further and carry ``"truncated": True``
        when they do have children.
        """
        max_depth = settings.THREAD_TREE_MAX_DEPTH if max_depth is None else max_depth
        thread = self.get_thread(thread_id)
        if thread is None:
            return None
        return self._build_tree(thread, 0, max_depth, set())

    def _build_tree(self, thread: Thread, depth: int, max_depth: int, seen: set) -> dict:
        seen.add(thread.id)
        node = {
            "thread": thread.to_dict(),
            "message_count": self.message_count(thread.id),
            "children": [],
        }
        children = [c for c in self.child_threads(thread.id) if c.id not in seen]
        if depth >= max_depth:
            if children:
                node["truncated"] = True
            return node
        node["children"] = [self._build_tree(c, depth + 1, max_depth, seen) for c in children]
        return node

    # ========================================================================
    # Environment data
    # ========================================================================

    def store_env_data(
        self,
        root_thread_id: str,
        key: str,
        short_description: str,
        value: Any,
        stored_by: Optional[str] = None,
    ) -> None:
        """Create or replace the entry for ``key`` under a root thread."""
        now = _now()
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO env_data (
                    root_thread_id, key, short_description, value, stored_by,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(root_thread_id, key) DO UPDATE SET
                    short_description = excluded.short_description,
                    value = excluded.value,
                    stored_by = excluded.stored_by,
                    updated_at = excluded.updated_at
            """, (root_thread_id, key, short_description, _dumps(value), stored_by, now, now))

    def get_env_data(self, root_thread_id: str, key: str) -> Optional[EnvDataEntry]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM env_data WHERE root_thread_id = ? AND key = ?",
                (root_thread_id, key),
            ).fetchone()
        return EnvDataEntry.from_row(row) if row else None

    def list_env_data(self, root_thread_id: str) -> list[dict]:
        """Keys and short descriptions only; values are left out."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT key, short_description, stored_by, updated_at FROM env_data
                WHERE root_thread_id = ? ORDER BY key
            """, (root_thread_id,)).fetchall()
        return [
            {
                "key": r["key"],
                "short_description": r["short_description"],
                "stored_by": r["stored_by"],
                "updated_at": r["updated_at"],
            }
            for r in rows
        ]

    def update_env_data(
        self,
        root_thread_id: str,
        key: str,
        value: Any = UNSET,
        short_description: Optional[str] = None,
        stored_by: Optional[str] = None,
    ) -> bool:
        """Update an existing entry; returns False when the key is absent.

        An omitted value keeps the current one (passing None stores null).
        A None description or stored_by keeps the current one.
        """
        existing = self.get_env_data(root_thread_id, key)
        if existing is None:
            return False

        with self._get_connection() as conn:
            conn.execute("""
                UPDATE env_data
                SET value = ?, short_description = ?, stored_by = ?, updated_at = ?
                WHERE root_thread_id = ? AND key = ?
            """, (
                _dumps(existing.value if value is UNSET else value),
                short_description if short_description is not None else existing.short_description,
                stored_by if stored_by is not None else existing.stored_by,
                _now(),
                root_thread_id,
                key,
            ))
        return True

    def delete_env_data(self, root_thread_id: str, key: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM env_data WHERE root_thread_id = ? AND key = ?",
                (root_thread_id, key),
            )
            return cursor.rowcount > 0

    # ========================================================================
    # Usage
    # ========================================================================

    def thread_usage(self, thread_id: str) -> dict:
        return usage_from_messages(self.get_messages(thread_id))

    def thread_tree_usage(self, thread_id: str, max_depth: Optional[int] = None) -> dict:
        """Usage of a thread merged with all of its delegation descendants."""
        max_depth = settings.THREAD_TREE_MAX_DEPTH if max_depth is None else max_depth
        if self.get_thread(thread_id) is None:
            return empty_usage()

        total = empty_usage()
        seen: set[str] = set()
        frontier = [(thread_id, 0)]
        while frontier:
            current, depth = frontier.pop()
            if current in seen:
                continue
            seen.add(current)
            total = merge_usage(total, self.thread_usage(current))
            if depth < max_depth:
                frontier.extend((c.id, depth + 1) for c in self.child_threads(current))
        return total

    # ========================================================================
    # Export
    # ========================================================================

    def export_thread_tree_markdown(self, thread_id: str, max_depth: Optional[int] = None) -> Optional[str]:
        max_depth = settings.THREAD_TREE_MAX_DEPTH if max_depth is None else max_depth
        return render_thread_tree_markdown(self, thread_id, max_depth)

    def export_thread_tree_json(self, thread_id: str, max_depth: Optional[int] = None) -> Optional[dict]:
        max_depth = settings.THREAD_TREE_MAX_DEPTH if max_depth is None else max_depth
        return build_thread_tree_json(self, thread_id, max_depth)

    def export_thread_markdown(self, thread_id: str) -> Optional[str]:
        return render_thread_markdown(self, thread_id)

    def export_thread_json(self, thread_id: str) -> Optional[dict]:
        thread = self.get_thread(thread_id)
        if thread is None:
            return None
        return {
            "thread": thread.to_dict(),
            "messages": [m.to_dict() for m in self.get_messages(thread_id)],
        }

    # ========================================================================
    # Event log
    # ========================================================================

    def add_event(self, entry: Any, thread_id: Optional[str] = None) -> int:
        """Persist a bus entry (a ``BusEntry`` or its dict form)."""
        data = entry.to_dict() if hasattr(entry, "to_dict") else dict(entry)
        timestamp = data.get("timestamp") or _now()
        message = data.get("message")
        with self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO events (thread_id, timestamp, from_name, to_name, message, summary)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                thread_id or data.get("thread_id"),
                _as_iso(timestamp),
                str(data.get("from") or data.get("from_") or ""),
                str(data.get("to") or ""),
                _dumps(message),
                data.get("summary"),
            ))
            return cursor.lastrowid

    def _query_events(self, where: str = "", params: tuple = (), order: str = "ASC", limit: Optional[int] = None) -> list[StoredEvent]:
        sql = "SELECT * FROM events"
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY timestamp {order}, id {order}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        with self._get_connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [StoredEvent.from_row(r) for r in rows]

    def get_events(self, thread_id: str) -> list[StoredEvent]:
        return self._query_events("thread_id = ?", (thread_id,))

    def get_events_since(self, since: Union[str, datetime]) -> list[StoredEvent]:
        """Events strictly after ``since``."""
        return self._query_events("timestamp > ?", (_as_iso(since),))

    def get_events_between(self, start: Union[str, datetime], end: Union[str, datetime]) -> list[StoredEvent]:
        return self._query_events("timestamp >= ? AND timestamp <= ?", (_as_iso(start), _as_iso(end)))

    def get_recent_events(self, n: int = 50) -> list[StoredEvent]:
        """The last ``n`` events, oldest first."""
        events = self._query_events(order="DESC", limit=n)
        events.reverse()
        return events

    def search_events(self, query: str) -> list[StoredEvent]:
        if not query:
            return []
        pattern = f"%{query}%"
        return self._query_events(
            "message LIKE ? OR summary LIKE ? OR from_name LIKE ? OR to_name LIKE ?",
            (pattern, pattern, pattern, pattern),
        )

    def total_events(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
