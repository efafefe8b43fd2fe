# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Utility subscribers and views over the message bus."""

import logging

from .message_bus import MessageBus
from ..types.event_types import BusEntry, LifecycleEvent

logger = logging.getLogger("prompt_objects.bus")


def log_entry(entry: BusEntry):
    """Mirror bus traffic into the log with compact formatting."""
    prefix_width = 12

    message = entry.message
    if isinstance(message, dict) and message.get("event") in {e.value for e in LifecycleEvent}:
        # lifecycle notifications are noisy, keep them out of INFO
        logger.debug(f"{message['event']:<{prefix_width}s} => {entry.summary}")
        return

    logger.info(f"{entry.from_:<{prefix_width}s} => {entry.to}: {entry.summary}")


def conversation_between(bus: MessageBus, a: str, b: str) -> list[BusEntry]:
    """Entries exchanged between two capabilities, in publish order."""
    return [
        e for e in bus.entries if {e.from_, e.to} == {a, b}
    ]


def lifecycle_entries(
    bus: MessageBus, event: LifecycleEvent | None = None
) -> list[BusEntry]:
    """Coordinator lifecycle notifications, optionally of a single kind."""
    entries = []
    for e in bus.entries:
        if not isinstance(e.message, dict) or "event" not in e.message:
            continue
        if event is not None and e.message["event"] != event.value:
            continue
        entries.append(e)
    return entries
