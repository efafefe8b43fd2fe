# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Base models and the client contract for LLM interactions."""

import json

from abc import ABC, abstractmethod
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator


class ToolCall(BaseModel):
    """A single tool call requested by the LLM."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _parse_arguments(cls, value: Any) -> dict:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                return {"_raw": value}
            return parsed if isinstance(parsed, dict) else {"value": parsed}
        return value

    @classmethod
    def from_dict(cls, data: "ToolCall | dict") -> "ToolCall":
        if isinstance(data, ToolCall):
            return data
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            arguments=data.get("arguments") or {},
        )


class TokenUsage(BaseModel):
    """Token counts reported for one LLM call."""

    input_tokens: int = 0
    output_tokens: int = 0
    model: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            model=self.model or other.model,
        )


class Message(BaseModel):
    """A message in a conversation with an LLM."""

    role: str
    content: Optional[str] = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[dict[str, Any]] = Field(default_factory=list)
    name: Optional[str] = None

    def __str__(self) -> str:
        parts = [f"Message from role={self.role}"]
        if self.content:
            parts.append(f"Text {'-'*10}\n{self.content}")
        for c in self.tool_calls:
            parts.append(f"Tool call {c.name} (id: {c.id}): {c.arguments}")
        for r in self.tool_results:
            parts.append(f"Tool result {r.get('name')} (id: {r.get('tool_call_id')}): {r.get('content')}")
        return "\n".join(parts)


class LLMResponse(BaseModel):
    """Normalised response from an LLM call."""

    content: Optional[str] = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: Optional[TokenUsage] = None
    raw_response: Optional[Any] = Field(default=None, exclude=True)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


class LLMClient(ABC):
    """The only surface of an LLM provider the runtime depends on."""

    model: str = "unknown"

    @abstractmethod
    async def chat(
        self, system: str, messages: list[Message], tools: list[dict]
    ) -> LLMResponse:
        """Run one completion over the conversation, offering ``tools``."""
        pass
