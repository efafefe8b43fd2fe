# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Message bus: the append-only log of inter-capability traffic."""

from __future__ import annotations

import logging

from typing import Any, Callable, TYPE_CHECKING

from ..types.event_types import BusEntry

if TYPE_CHECKING:
    from ..storage.session_store import SessionStore

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class MessageBus:
    """
    Every message between capabilities passes through here.

    Features:
    - Append-only, immutable entries timestamped at publish time
    - Synchronous fan-out to subscribers, in registration order
    - Optional mirroring of entries into the store's event log
    """

    def __init__(self, store: SessionStore | None = None):
        self.store = store
        self._entries: list[BusEntry] = []
        self._subscribers: list[Callable[[BusEntry], Any]] = []

    def publish(
        self, from_: str, to: str, message: Any, thread_id: str | None = None
    ) -> BusEntry:
        """Append an entry and deliver it to every subscriber.

        Args:
            from_: The publishing capability (or "human")
            to: The receiving capability
            message: The payload, text or structured data
            thread_id: The thread the message belongs to, if any

        Returns:
            The appended entry
        """
        entry = BusEntry(from_=from_, to=to, message=message, thread_id=thread_id)
        self._entries.append(entry)
        logger.debug(f"Bus: {entry.format()}")

        self._persist(entry)

        for callback in list(self._subscribers):
            try:
                callback(entry)
            except Exception as e:
                logger.error(f"Error in bus subscriber {callback}: {e}")

        return entry

    def _persist(self, entry: BusEntry) -> None:
        if self.store is None:
            return
        try:
            self.store.add_event(entry, thread_id=entry.thread_id)
        except Exception as e:
            logger.warning(f"Failed to persist bus event: {e}")

    def subscribe(self, callback: Callable[[BusEntry], Any]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[BusEntry], Any]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def recent(self, n: int = 20) -> list[BusEntry]:
        if n <= 0:
            return []
        return self._entries[-n:]

    @property
    def entries(self) -> list[BusEntry]:
        return list(self._entries)

    def clear(self) -> None:
        """Clear the in-memory log. Persisted events are kept."""
        self._entries.clear()

    def format_log(self, n: int = 20) -> str:
        return "\n".join(entry.format() for entry in self.recent(n))

    def __len__(self) -> int:
        return len(self._entries)
