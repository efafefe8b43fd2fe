# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import asyncio
import logging

from contextlib import nullcontext
from typing import Optional
from pydantic import Field, field_validator

from ..base_tool import BaseTool
from ...types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class AskHuman(BaseTool):
    TOOL_NAME = "ask_human"
    TOOL_DESCRIPTION = """Pause and ask the human a question. Use this when you need confirmation, clarification, or input.

Only your own work waits for the answer; other agents keep running."""

    question: str = Field(..., description="The question to ask the human")
    options: Optional[list[str]] = Field(
        None,
        description="Optional list of choices to present (a list, or a comma-separated string)",
    )

    @field_validator("options", mode="before")
    @classmethod
    def split_options(cls, v):
        if v is None or isinstance(v, list):
            return v
        options = [o.strip() for o in str(v).split(",") if o.strip()]
        return options or None

    def _waiting_marker(self):
        """Marks the asking agent as waiting for the duration of the wait."""
        ctx = self.context
        agent = ctx.registry.get(self.caller) if ctx and ctx.registry else None
        marker = getattr(agent, "waiting_for_human", None)
        return marker() if callable(marker) else nullcontext()

    def _publish(self, from_: str, to: str, message: str):
        if self.context and self.context.bus:
            self.context.bus.publish(from_, to, message, thread_id=self.context.thread_id)

    async def run(self) -> ToolResult:
        ctx = self.context
        asker = self.caller

        if ctx is not None and ctx.interactive and ctx.human_queue is not None:
            request = ctx.human_queue.enqueue(asker, self.question, self.options)
            self._publish(asker, "human", f"[waiting] {self.question}")
            with self._waiting_marker():
                try:
                    answer = await request.wait()
                except asyncio.CancelledError:
                    # Nobody is left to resume; take the question off the queue.
                    ctx.human_queue.cancel(request.id)
                    self._publish(asker, "human", f"[withdrawn] {self.question}")
                    raise
            self._publish("human", asker, str(answer))
            return self.ok(str(answer))

        answer = await self._prompt_directly(asker)
        self._publish("human", asker, answer)
        return self.ok(answer)

    async def _prompt_directly(self, asker: str) -> str:
        """Blocking prompt for hosts that cannot suspend."""
        prompt = self.context.prompt if self.context is not None else input

        lines = [f"{asker} asks: {self.question}"]
        if self.options:
            lines += [f"  [{i + 1}] {opt}" for i, opt in enumerate(self.options)]
            lines.append(f"Your choice (1-{len(self.options)}): ")
        else:
            lines.append("Your answer: ")

        with self._waiting_marker():
            raw = prompt("\n".join(lines))
            if asyncio.iscoroutine(raw):
                raw = await raw
        choice = (raw or "").strip()

        if self.options and choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(self.options):
                return self.options[index]
        return choice
