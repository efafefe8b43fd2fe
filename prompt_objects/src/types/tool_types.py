# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os
import json

from abc import ABC, abstractmethod
from typing import Any, ClassVar
from pydantic import BaseModel, Field


class ToolResult(BaseModel):
    """Represents the result of a single capability invocation."""

    tool_name: str
    success: bool
    duration: float = 0.0  # on error paths, duration is often 0
    output: dict[str, Any] | list | str | None = None
    warnings: str | None = None
    errors: str | None = None
    call_id: str | None = None
    invocation_id: str = Field(default_factory=lambda: os.urandom(4).hex())

    @classmethod
    def failure(
        cls, tool_name: str, errors: str, call_id: str | None = None, duration: float = 0.0
    ) -> "ToolResult":
        return cls(
            tool_name=tool_name,
            success=False,
            errors=errors,
            call_id=call_id,
            duration=duration,
        )

    @property
    def content(self) -> str:
        """The text handed back to the LLM as the tool message content."""
        if not self.success:
            return self.errors if self.errors and self.errors.startswith("Error") else f"Error: {self.errors}"
        if self.output is None:
            return ""
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output)

    def to_message_result(self) -> dict[str, Any]:
        """Shape stored in a tool message's tool_results column."""
        return {
            "tool_call_id": self.call_id,
            "name": self.tool_name,
            "content": self.content,
            "success": self.success,
        }

    def __str__(self):
        parts = [f"{self.tool_name} response:", f"Success: {self.success}"]
        if self.output is not None:
            parts.append(f"Result: {self.content}")
        if self.warnings is not None:
            parts.append(f"Warnings: {self.warnings}")
        if self.errors is not None:
            parts.append(f"Errors: {self.errors}")
        parts.append(f"Duration: {self.duration:.3f}")
        return "\n".join(parts)


class ToolInterface(BaseModel, ABC):
    """Abstract interface for all code-defined primitives"""

    # Class variables
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    class Config:
        extra = "forbid"

    @abstractmethod
    async def run(self) -> ToolResult:
        """Execute the tool's functionality"""
        pass

    @classmethod
    @abstractmethod
    def parameters(cls) -> dict:
        """JSON schema of the tool's arguments."""
        pass
