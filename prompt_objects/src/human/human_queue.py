# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Human escalation queue.

Each request owns an ``asyncio.Future``. The task that escalated awaits
``request.wait()`` and is resumed only when ``respond`` is called with that
request's id; every other task keeps running in the meantime.
"""

import uuid
import asyncio
import logging

from typing import Any, Callable, Optional
from datetime import datetime
from dataclasses import dataclass, field
from collections import Counter

from ..types.errors import UnresolvedEscalationError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@dataclass
class HumanRequest:
    """A question from a capability, awaiting a human answer."""

    capability: str
    question: str
    options: Optional[list[str]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    response: Any = None
    resolved_at: Optional[datetime] = None
    cancelled: bool = False
    _future: Optional[asyncio.Future] = field(default=None, repr=False, compare=False)

    @property
    def pending(self) -> bool:
        return self.resolved_at is None

    @property
    def age(self) -> float:
        """Seconds since the request was created."""
        return (datetime.now() - self.created_at).total_seconds()

    @property
    def age_string(self) -> str:
        seconds = int(self.age)
        if seconds < 60:
            return f"{seconds}s"
        if seconds < 3600:
            return f"{seconds // 60}m"
        return f"{seconds // 3600}h"

    def resolve(self, value: Any) -> None:
        self.response = value
        self.resolved_at = datetime.now()
        if self._future is not None and not self._future.done():
            self._future.set_result(value)

    def withdraw(self) -> None:
        self.resolved_at = datetime.now()
        self.cancelled = True
        if self._future is not None and not self._future.done():
            self._future.cancel()

    async def wait(self) -> Any:
        """Suspend the calling task until a human responds."""
        if not self.pending:
            return self.response
        if self._future is None or self._future.cancelled():
            self._future = asyncio.get_running_loop().create_future()
        return await self._future

    def result(self) -> Any:
        if self.cancelled:
            raise UnresolvedEscalationError(f"Request {self.id} from {self.capability} was withdrawn")
        if self.pending:
            raise UnresolvedEscalationError(
                f"Request {self.id} from {self.capability} is still pending ({self.age_string})"
            )
        return self.response

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "capability": self.capability,
            "question": self.question,
            "options": self.options,
            "created_at": self.created_at.isoformat(),
            "age": self.age_string,
            "pending": self.pending,
            "cancelled": self.cancelled,
        }


class HumanQueue:
    """Pending human requests, addressable by id."""

    ADDED = "added"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"

    def __init__(self):
        self._pending: dict[str, HumanRequest] = {}
        self._subscribers: list[Callable[[str, HumanRequest], Any]] = []

    def enqueue(
        self, capability: str, question: str, options: Optional[list[str]] = None
    ) -> HumanRequest:
        request = HumanRequest(capability=capability, question=question, options=options)
        self._pending[request.id] = request
        logger.info(f"{capability} is waiting on a human: {question}")
        self._notify(self.ADDED, request)
        return request

    def respond(self, request_id: str, value: Any) -> bool:
        """Resolve a request and resume the task waiting on it.

        Returns False (and changes nothing) for unknown or already
        resolved ids.
        """
        request = self._pending.pop(request_id, None)
        if request is None:
            logger.warning(f"No pending human request with id {request_id}")
            return False

        request.resolve(value)
        self._notify(self.RESOLVED, request)
        return True

    def cancel(self, request_id: str) -> bool:
        """Withdraw a request whose asker stopped waiting (timeout or cancellation).

        A later ``respond`` for the same id then returns False.
        """
        request = self._pending.pop(request_id, None)
        if request is None:
            return False

        request.withdraw()
        logger.info(f"Withdrew human request {request_id} from {request.capability}")
        self._notify(self.CANCELLED, request)
        return True

    def get(self, request_id: str) -> Optional[HumanRequest]:
        return self._pending.get(request_id)

    def pending_for(self, capability: str) -> list[HumanRequest]:
        return [r for r in self._pending.values() if r.capability == capability]

    @property
    def all_pending(self) -> list[HumanRequest]:
        return sorted(self._pending.values(), key=lambda r: r.created_at)

    @property
    def count(self) -> int:
        return len(self._pending)

    def pending_counts(self) -> dict[str, int]:
        return dict(Counter(r.capability for r in self._pending.values()))

    def subscribe(self, callback: Callable[[str, HumanRequest], Any]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[str, HumanRequest], Any]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, event: str, request: HumanRequest) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, request)
            except Exception as e:
                logger.error(f"Error in human queue subscriber {callback}: {e}")
