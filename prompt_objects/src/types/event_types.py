# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import json

from enum import Enum
from typing import Any
from datetime import datetime
from dataclasses import field, dataclass

SUMMARY_LENGTH = 200


class LifecycleEvent(str, Enum):
    """Observability notifications emitted by the coordinator."""

    BATCH_STARTED = "batch_started"
    BATCH_COMPLETED = "batch_completed"
    DELEGATION_STARTED = "delegation_started"
    DELEGATION_COMPLETED = "delegation_completed"


def summarize(message: Any, length: int = SUMMARY_LENGTH) -> str:
    """One-line rendering of a bus payload."""
    if isinstance(message, (dict, list)):
        text = json.dumps(message, default=str)
    else:
        text = str(message) if message is not None else ""
    text = " ".join(text.split())
    if len(text) > length:
        return text[:length] + "..."
    return text


@dataclass(frozen=True)
class BusEntry:
    """An immutable message bus record"""

    from_: str
    to: str
    message: Any
    timestamp: datetime = field(default_factory=datetime.now)
    summary: str = ""
    thread_id: str | None = None

    def __post_init__(self):
        if not self.summary:
            object.__setattr__(self, "summary", summarize(self.message))

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "from": self.from_,
            "to": self.to,
            "message": self.message,
            "summary": self.summary,
            "thread_id": self.thread_id,
        }

    def format(self) -> str:
        return f"{self.timestamp.strftime('%H:%M:%S')}  {self.from_} -> {self.to}: {self.summary}"
