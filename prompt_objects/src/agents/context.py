# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""The per-call execution context."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Optional, TYPE_CHECKING

from ..types.errors import CycleError

if TYPE_CHECKING:
    from ..events.message_bus import MessageBus
    from ..human.human_queue import HumanQueue
    from ..registry.registry import Registry
    from ..storage.session_store import SessionStore
    from ..coordinator.tool_coordinator import ToolCoordinator


@dataclass
class ExecutionContext:
    """
    Everything a capability needs for one invocation.

    Thread state (``thread_id``, ``parent_message_id``) travels here
    explicitly; nothing is read from or swapped into a shared agent instance.
    Concurrent branches each get their own copy via ``derive``.
    """

    store: Optional[SessionStore] = None
    bus: Optional[MessageBus] = None
    registry: Optional[Registry] = None
    human_queue: Optional[HumanQueue] = None
    coordinator: Optional[ToolCoordinator] = None
    calling_agent: Optional[str] = None
    current_capability: Optional[str] = None
    thread_id: Optional[str] = None
    parent_message_id: Optional[int] = None
    tool_call_id: Optional[str] = None
    interactive: bool = False
    prompt: Callable[[str], str] = input
    call_stack: list[str] = field(default_factory=list)

    def push(self, name: str) -> None:
        if name in self.call_stack:
            raise CycleError(name, self.call_stack)
        self.call_stack.append(name)

    def pop(self) -> Optional[str]:
        if not self.call_stack:
            return None
        return self.call_stack.pop()

    @property
    def depth(self) -> int:
        return len(self.call_stack)

    @property
    def delegation_chain(self) -> list[str]:
        return ["human"] + list(self.call_stack)

    def derive(self, **changes) -> "ExecutionContext":
        """An independent copy, with its own call stack."""
        changes.setdefault("call_stack", list(self.call_stack))
        return replace(self, **changes)
