# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from pydantic import Field

from ..base_tool import BaseTool
from ...types.tool_types import ToolResult


class Think(BaseTool):
    TOOL_NAME = "think"
    TOOL_DESCRIPTION = """Internal reasoning step. Use this to think through a problem before acting.

The thought is logged but not shown prominently to the human."""

    thought: str = Field(..., description="Your internal reasoning or thought process")

    async def run(self) -> ToolResult:
        if self.context and self.context.bus:
            self.context.bus.publish(
                self.caller,
                "thought",
                self.thought,
                thread_id=self.context.thread_id,
            )
        return self.ok("Thought recorded.")
