# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Execution of the tool calls produced by one LLM turn.

Calls run through a semaphore of size K and are gathered back in their
original order. Every failure, whether an unknown or undeclared capability,
bad arguments, a delegation cycle, a timeout or an exception raised by the
capability itself, becomes an error-shaped ``ToolResult``; nothing escapes
the batch.
"""

from __future__ import annotations

import asyncio
import logging

from typing import Iterable, Optional, TYPE_CHECKING

from ..config import settings
from ..llm.base import ToolCall
from ..types.errors import PromptObjectsError, ToolFailureError
from ..types.event_types import LifecycleEvent
from ..types.tool_types import ToolResult

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext
    from ..events.message_bus import MessageBus
    from ..registry.registry import Registry

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

COORDINATOR = "coordinator"


class ToolCoordinator:
    """Bounded fan-out/fan-in over one batch of tool calls."""

    def __init__(
        self,
        registry: Registry,
        bus: Optional[MessageBus] = None,
        max_concurrency: Optional[int] = None,
        concurrent: Optional[bool] = None,
        call_timeout: Optional[float] = None,
    ):
        """
        Args:
            registry: Where tool names are resolved
            bus: Receives call, result and lifecycle entries
            max_concurrency: K, the most calls in flight at once
            concurrent: When False, calls run one after another
            call_timeout: Seconds before a single call is reported as failed
        """
        self.registry = registry
        self.bus = bus
        self.max_concurrency = max(
            1, max_concurrency if max_concurrency is not None else settings.MAX_CONCURRENT_TOOLS
        )
        self.concurrent = settings.CONCURRENT_TOOLS if concurrent is None else concurrent
        self.call_timeout = call_timeout if call_timeout is not None else settings.TOOL_CALL_TIMEOUT

    @property
    def limit(self) -> int:
        return self.max_concurrency if self.concurrent else 1

    def _publish(self, from_: str, to: str, message, thread_id: Optional[str] = None):
        if self.bus is not None:
            self.bus.publish(from_, to, message, thread_id=thread_id)

    async def execute(
        self,
        tool_calls: list[ToolCall],
        context: ExecutionContext,
        allowed: Optional[Iterable[str]] = None,
    ) -> list[ToolResult]:
        """
        Run every call of a turn and return the results in call order.

        Args:
            tool_calls: The calls from one LLM response
            context: The calling agent's turn context
            allowed: Capability names the caller may use; None allows all

        Returns:
            One ToolResult per call, in the same order as ``tool_calls``
        """
        if not tool_calls:
            return []

        caller = context.calling_agent or "human"
        allowed_names = set(allowed) if allowed is not None else None
        semaphore = asyncio.Semaphore(self.limit)

        self._publish(
            caller,
            COORDINATOR,
            {
                "event": LifecycleEvent.BATCH_STARTED.value,
                "count": len(tool_calls),
                "tools": [c.name for c in tool_calls],
                "concurrency": self.limit,
            },
            thread_id=context.thread_id,
        )

        async def bounded(call: ToolCall) -> ToolResult:
            async with semaphore:
                return await self._run_call(call, context, allowed_names)

        results = await asyncio.gather(*(bounded(c) for c in tool_calls))

        failed = sum(1 for r in results if not r.success)
        self._publish(
            COORDINATOR,
            caller,
            {
                "event": LifecycleEvent.BATCH_COMPLETED.value,
                "count": len(results),
                "failed": failed,
            },
            thread_id=context.thread_id,
        )
        return list(results)

    async def _run_call(
        self,
        call: ToolCall,
        context: ExecutionContext,
        allowed: Optional[set[str]],
    ) -> ToolResult:
        caller = context.calling_agent or "human"

        adapter = self.registry.adapter_for(call.name)
        if adapter is None:
            logger.warning(f"{caller} called unknown capability {call.name}")
            return ToolResult.failure(
                call.name, f"Unknown capability: {call.name}", call_id=call.id
            )

        if allowed is not None and call.name not in allowed:
            declared = ", ".join(sorted(allowed)) or "(none)"
            return ToolResult.failure(
                call.name,
                f"Capability '{call.name}' is not available to {caller}. "
                f"Available capabilities are: {declared}. "
                "Use add_capability to add it first, or list_capabilities to discover what's available.",
                call_id=call.id,
            )

        call_context = context.derive(current_capability=call.name, tool_call_id=call.id)
        is_delegation = adapter.capability.is_agent

        self._publish(caller, call.name, call.arguments, thread_id=context.thread_id)
        if is_delegation:
            self._publish(
                caller,
                COORDINATOR,
                {
                    "event": LifecycleEvent.DELEGATION_STARTED.value,
                    "target": call.name,
                    "caller": caller,
                    "tool_call_id": call.id,
                },
                thread_id=context.thread_id,
            )

        try:
            if self.call_timeout:
                result = await asyncio.wait_for(
                    adapter.invoke(call.arguments, call_context), timeout=self.call_timeout
                )
            else:
                result = await adapter.invoke(call.arguments, call_context)
        except asyncio.TimeoutError:
            logger.warning(f"{call.name} timed out after {self.call_timeout}s")
            result = ToolResult.failure(
                call.name, f"Error: {call.name} timed out after {self.call_timeout}s"
            )
        except PromptObjectsError as e:
            logger.info(f"{call.name} rejected call from {caller}: {e}")
            result = ToolResult.failure(call.name, f"Error: {e}")
        except Exception as e:
            failure = ToolFailureError(call.name, str(e))
            logger.error(f"Tool failure: {failure}")
            result = ToolResult.failure(call.name, f"Error: {failure}")
        finally:
            if is_delegation:
                self._publish(
                    COORDINATOR,
                    caller,
                    {
                        "event": LifecycleEvent.DELEGATION_COMPLETED.value,
                        "target": call.name,
                        "caller": caller,
                        "tool_call_id": call.id,
                    },
                    thread_id=context.thread_id,
                )

        result.call_id = call.id
        result.tool_name = call.name
        self._publish(call.name, caller, result.content, thread_id=context.thread_id)
        return result
