"""
Data models for the thread/session store.

These dataclasses represent the rows stored in the database.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
import json


def _loads(value: Optional[str], default: Any = None) -> Any:
    if value is None or value == "":
        return default
    try:
        return json.loads(value)
    except (TypeError, json.JSONDecodeError):
        return value


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Thread:
    """
    A single linear conversation scope.

    Threads form a tree through delegation:
    - Lineage: parent thread, the parent message that triggered it, and the
      agent that created it
    - Type: root, continuation, delegation or fork
    - Source: which front end or connector created it
    """
    id: str
    agent_name: str
    thread_type: str
    source: str
    created_at: datetime
    updated_at: datetime

    name: Optional[str] = None
    parent_thread_id: Optional[str] = None
    parent_message_id: Optional[int] = None
    parent_agent: Optional[str] = None
    last_message_source: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_row(cls, row) -> "Thread":
        return cls(
            id=row['id'],
            agent_name=row['agent_name'],
            name=row['name'],
            thread_type=row['thread_type'],
            source=row['source'],
            created_at=_parse_time(row['created_at']),
            updated_at=_parse_time(row['updated_at']),
            parent_thread_id=row['parent_thread_id'],
            parent_message_id=row['parent_message_id'],
            parent_agent=row['parent_agent'],
            last_message_source=row['last_message_source'],
            metadata=_loads(row['metadata'], {}) or {},
        )

    @property
    def is_root(self) -> bool:
        return self.parent_thread_id is None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'agent_name': self.agent_name,
            'name': self.name,
            'thread_type': self.thread_type,
            'source': self.source,
            'parent_thread_id': self.parent_thread_id,
            'parent_message_id': self.parent_message_id,
            'parent_agent': self.parent_agent,
            'last_message_source': self.last_message_source,
            'metadata': self.metadata,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class StoredMessage:
    """A message within a thread, ordered by its per-thread sequence id."""
    id: int
    thread_id: str
    sequence_id: int
    role: str
    created_at: datetime

    content: Optional[str] = None
    from_agent: Optional[str] = None
    tool_calls: list = field(default_factory=list)
    tool_results: list = field(default_factory=list)
    usage: Optional[dict] = None
    source: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "StoredMessage":
        return cls(
            id=row['id'],
            thread_id=row['thread_id'],
            sequence_id=row['sequence_id'],
            role=row['role'],
            content=row['content'],
            from_agent=row['from_agent'],
            tool_calls=_loads(row['tool_calls'], []) or [],
            tool_results=_loads(row['tool_results'], []) or [],
            usage=_loads(row['usage']),
            source=row['source'],
            created_at=_parse_time(row['created_at']),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'thread_id': self.thread_id,
            'sequence_id': self.sequence_id,
            'role': self.role,
            'content': self.content,
            'from_agent': self.from_agent,
            'tool_calls': self.tool_calls,
            'tool_results': self.tool_results,
            'usage': self.usage,
            'source': self.source,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class EnvDataEntry:
    """Shared data scoped to a root thread; one live entry per key."""
    root_thread_id: str
    key: str
    short_description: str
    value: Any
    created_at: datetime
    updated_at: datetime
    stored_by: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "EnvDataEntry":
        return cls(
            root_thread_id=row['root_thread_id'],
            key=row['key'],
            short_description=row['short_description'],
            value=_loads(row['value']),
            stored_by=row['stored_by'],
            created_at=_parse_time(row['created_at']),
            updated_at=_parse_time(row['updated_at']),
        )

    def to_dict(self, include_value: bool = True) -> dict:
        data = {
            'key': self.key,
            'short_description': self.short_description,
            'stored_by': self.stored_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_value:
            data['value'] = self.value
        return data


@dataclass
class StoredEvent:
    """A persisted mirror of a message bus entry."""
    id: int
    timestamp: datetime
    from_name: str
    to_name: str
    message: Any
    summary: Optional[str] = None
    thread_id: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "StoredEvent":
        return cls(
            id=row['id'],
            thread_id=row['thread_id'],
            timestamp=_parse_time(row['timestamp']),
            from_name=row['from_name'],
            to_name=row['to_name'],
            message=_loads(row['message']),
            summary=row['summary'],
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'thread_id': self.thread_id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'from': self.from_name,
            'to': self.to_name,
            'message': self.message,
            'summary': self.summary,
        }
