"""
Thread/session storage.

This module provides persistent storage for delegation-shaped conversation
threads, thread-scoped environment data, usage rollups and the event log.
"""

from .models import Thread, StoredMessage, EnvDataEntry, StoredEvent
from .session_store import SessionStore
from .migrations import SCHEMA_VERSION

__all__ = [
    'Thread',
    'StoredMessage',
    'EnvDataEntry',
    'StoredEvent',
    'SessionStore',
    'SCHEMA_VERSION',
]
