# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The prompt object: an LLM-backed capability defined by a behavior template.

A prompt object holds only its definition. Everything a call needs (the
thread it writes to, the conversation so far, the delegation stack) arrives
as parameters, so any number of calls into the same prompt object can be in
flight at once without seeing each other's history.
"""

from __future__ import annotations

import logging

from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING
from contextlib import contextmanager

from .context import ExecutionContext
from .delegation import create_delegation_thread, build_delegation_preamble
from .loader import save_definition
from ..config import settings
from ..coordinator.tool_coordinator import ToolCoordinator
from ..llm.base import LLMClient, LLMResponse, Message, ToolCall
from ..tools.universal import UNIVERSAL_CAPABILITY_NAMES
from ..types.agent_types import AgentConfig, AgentState, DelegationInfo
from ..types.capability_types import Capability, CapabilityKind
from ..types.tool_types import ToolResult

if TYPE_CHECKING:
    from ..storage.session_store import SessionStore
    from ..storage.models import StoredMessage

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


SYSTEM_CONTEXT = """## System Context

You are a prompt object named "{name}" running in a PromptObjects environment.
Your description: {description}

### What is a Prompt Object?
You are an autonomous entity defined by a markdown file. You have an identity (your prompt),
capabilities (tools you can use), and you communicate by receiving messages and responding.
You exist alongside other prompt objects and primitive tools in a shared environment.

### How you get called
You may receive messages from:
- **A human** interacting with you directly
- **Another prompt object** that has delegated a task to you as part of a larger workflow

When called by another PO, your instructions include a delegation context block with details
about who called you. You can also check shared environment data (via `list_env_data`)
for context that other POs in the same workflow have stored.

### Your capabilities
When using tools that target a PO (like add_capability), you can use "self" or "{name}" to target yourself.
- Declared capabilities: {declared}
- Universal capabilities (always available): {universal}

Use `list_capabilities` to see everything available."""


class PromptObject(Capability):
    """An agent capability: behavior template plus declared capabilities."""

    kind = CapabilityKind.AGENT

    def __init__(
        self,
        config: AgentConfig,
        body: str,
        llm: LLMClient,
        path: Optional[Path] = None,
    ):
        self.config = config
        self.body = body
        self.llm = llm
        self.path = path
        self.selected = False
        self._active_runs = 0
        self._waiting = 0

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def description(self) -> str:
        return self.config.description

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": f"The message or task to send to {self.name}",
                }
            },
            "required": ["message"],
        }

    @property
    def capabilities(self) -> list[str]:
        return list(self.config.capabilities)

    @property
    def max_turns(self) -> int:
        return self.config.max_turns or settings.MAX_TURNS

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> AgentState:
        """Derived from the calls currently in flight, never set directly."""
        if self._waiting > 0:
            return AgentState.WAITING_FOR_HUMAN
        if self._active_runs > 0:
            return AgentState.WORKING
        if self.selected:
            return AgentState.ACTIVE
        return AgentState.IDLE

    @contextmanager
    def waiting_for_human(self):
        self._waiting += 1
        try:
            yield
        finally:
            self._waiting -= 1

    def add_capability(self, name: str) -> bool:
        if name in self.config.capabilities:
            return False
        self.config.capabilities.append(name)
        return True

    def remove_capability(self, name: str) -> bool:
        if name not in self.config.capabilities:
            return False
        self.config.capabilities.remove(name)
        return True

    def save(self) -> bool:
        """Write the current config and body back to the definition file.

        Returns False when the prompt object has no file or the write fails.
        """
        if self.path is None:
            return False
        try:
            save_definition(self.path, self.config, self.body)
        except OSError as e:
            logger.error(f"Could not save {self.name} to {self.path}: {e}")
            return False
        logger.info(f"Saved {self.name} to {self.path}")
        return True

    def allowed_capabilities(self) -> list[str]:
        """Declared plus universal capability names, without duplicates."""
        allowed = []
        for name in [*self.config.capabilities, *UNIVERSAL_CAPABILITY_NAMES]:
            if name not in allowed:
                allowed.append(name)
        return allowed

    def to_summary(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "state": self.state.value,
            "capabilities": self.capabilities,
        }

    # ------------------------------------------------------------------
    # Prompt and history
    # ------------------------------------------------------------------

    def build_system_prompt(self, preamble: Optional[str] = None) -> str:
        declared = self.config.capabilities
        context_block = SYSTEM_CONTEXT.format(
            name=self.name,
            description=self.description or "(none)",
            declared=", ".join(declared) if declared else "(none)",
            universal=", ".join(UNIVERSAL_CAPABILITY_NAMES),
        )
        parts = [self.body.strip()]
        if preamble:
            parts.append(preamble)
        parts.append(context_block)
        return "\n\n".join(parts)

    @staticmethod
    def history_message(stored: StoredMessage) -> Message:
        if stored.role == "assistant":
            return Message(
                role="assistant",
                content=stored.content,
                tool_calls=[ToolCall.from_dict(tc) for tc in stored.tool_calls],
            )
        if stored.role == "tool":
            return Message(role="tool", tool_results=stored.tool_results)
        return Message(role="user", content=stored.content or "")

    def load_history(self, store: Optional[SessionStore], thread_id: Optional[str]) -> list[Message]:
        """The conversation so far in ``thread_id``, as LLM messages."""
        if store is None or thread_id is None:
            return []
        return [self.history_message(m) for m in store.get_messages(thread_id)]

    @staticmethod
    def _persist(
        store: Optional[SessionStore], thread_id: Optional[str], role: str, **fields
    ) -> Optional[int]:
        if store is None or thread_id is None:
            return None
        return store.add_message(thread_id, role, **fields)

    def _usage_of(self, response: LLMResponse) -> Optional[dict]:
        if response.usage is None:
            return None
        usage = response.usage.model_dump()
        if not usage.get("model"):
            usage["model"] = getattr(self.llm, "model", None)
        return usage

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        message: str,
        thread_id: Optional[str] = None,
        context: Optional[ExecutionContext] = None,
        delegation: Optional[DelegationInfo] = None,
        source: Optional[str] = None,
    ) -> str:
        """
        Handle one incoming message in ``thread_id`` and return the reply.

        Exceeding the turn bound does not raise; the returned text is an
        error message instead.
        """
        content, _ = await self.converse(message, thread_id, context, delegation, source)
        return content

    async def converse(
        self,
        message: str,
        thread_id: Optional[str] = None,
        context: Optional[ExecutionContext] = None,
        delegation: Optional[DelegationInfo] = None,
        source: Optional[str] = None,
    ) -> tuple[str, bool]:
        """
        The tool-calling loop.

        Returns:
            The final content, and whether the loop ended with a final
            response (False when the turn bound was hit)
        """
        context = context or ExecutionContext()
        store = context.store
        registry = context.registry
        coordinator = context.coordinator or ToolCoordinator(registry, context.bus, concurrent=False)

        if delegation is not None:
            sender = delegation.caller
        elif context.calling_agent and context.calling_agent != self.name:
            sender = context.calling_agent
        else:
            sender = "human"

        history = self.load_history(store, thread_id)
        self._persist(
            store, thread_id, "user", content=message, from_agent=sender, source=source
        )
        history.append(Message(role="user", content=message))

        preamble = None
        if delegation is not None:
            preamble = build_delegation_preamble(self.name, delegation, store, thread_id)
        system = self.build_system_prompt(preamble)

        self._active_runs += 1
        try:
            for turn in range(self.max_turns):
                allowed = self.allowed_capabilities()
                tools = registry.descriptors_for(allowed) if registry is not None else []

                logger.info(f"{self.name}: awaiting completion for turn {turn} ({len(history)} messages)")
                response = await self.llm.chat(system, history, tools)
                usage = self._usage_of(response)

                if not response.has_tool_calls:
                    content = response.content or ""
                    self._persist(
                        store, thread_id, "assistant",
                        content=content, from_agent=self.name, usage=usage,
                    )
                    history.append(Message(role="assistant", content=content))
                    return content, True

                assistant_id = self._persist(
                    store, thread_id, "assistant",
                    from_agent=self.name,
                    tool_calls=[c.model_dump() for c in response.tool_calls],
                    usage=usage,
                )
                history.append(Message(role="assistant", tool_calls=response.tool_calls))

                turn_context = context.derive(
                    calling_agent=self.name,
                    current_capability=self.name,
                    thread_id=thread_id,
                    parent_message_id=assistant_id,
                    tool_call_id=None,
                )
                results = await coordinator.execute(response.tool_calls, turn_context, allowed)

                tool_results = [r.to_message_result() for r in results]
                self._persist(
                    store, thread_id, "tool", tool_results=tool_results, from_agent=self.name
                )
                history.append(Message(role="tool", tool_results=tool_results))

            error = (
                f"Error: {self.name} stopped after reaching the maximum of "
                f"{self.max_turns} turns without a final response."
            )
            logger.warning(error)
            if context.bus is not None:
                context.bus.publish(self.name, sender, error, thread_id=thread_id)
            return error, False
        finally:
            self._active_runs -= 1

    async def receive(self, arguments: dict, context: ExecutionContext) -> ToolResult:
        """
        Entry point when another agent calls this one as a tool.

        Raises:
            CycleError: if this agent is already on the delegation stack
        """
        message = str(arguments.get("message", ""))
        caller = context.calling_agent or "human"

        child_context = context.derive()
        child_context.push(self.name)

        caller_capability = context.registry.get(caller) if context.registry else None
        delegation = DelegationInfo(
            caller=caller,
            caller_description=caller_capability.description if caller_capability else "",
            chain=child_context.call_stack[:-1],
            parent_thread_id=context.thread_id,
            parent_message_id=context.parent_message_id,
            tool_call_id=context.tool_call_id,
        )
        thread_id = create_delegation_thread(context.store, self.name, delegation)

        child_context = child_context.derive(
            calling_agent=caller,
            current_capability=self.name,
            thread_id=thread_id,
            parent_message_id=None,
            tool_call_id=None,
        )
        content, completed = await self.converse(
            message, thread_id, child_context, delegation=delegation
        )
        if completed:
            return ToolResult(tool_name=self.name, success=True, output=content)
        return ToolResult.failure(self.name, content)
