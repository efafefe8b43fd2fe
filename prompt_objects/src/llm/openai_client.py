# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""OpenAI chat completions adapter (also serves OpenAI-compatible endpoints)."""

import json
import logging

from openai import AsyncOpenAI
from typing import Optional

from .base import LLMClient, LLMResponse, Message, ToolCall, TokenUsage
from ..config import settings

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class OpenAIClient(LLMClient):
    def __init__(
        self,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        temperature: Optional[float] = None,
    ):
        self.model = model or settings.MODEL
        self.temperature = temperature
        self.client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL
        )

    def _prepare_messages(self, system: str, messages: list[Message]) -> list[dict]:
        oai_messages: list[dict] = []
        if system:
            oai_messages.append({"role": "system", "content": system})

        for msg in messages:
            if msg.role == "assistant":
                entry: dict = {"role": "assistant", "content": msg.content}
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ]
                oai_messages.append(entry)
            elif msg.role == "tool":
                for result in msg.tool_results:
                    oai_messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": result.get("tool_call_id"),
                            "content": str(result.get("content", "")),
                        }
                    )
            else:
                oai_messages.append({"role": msg.role, "content": msg.content or ""})

        return oai_messages

    async def chat(
        self, system: str, messages: list[Message], tools: list[dict]
    ) -> LLMResponse:
        args = {
            "model": self.model,
            "messages": self._prepare_messages(system, messages),
        }
        if tools:
            args["tools"] = tools
        if self.temperature is not None:
            args["temperature"] = self.temperature

        response = await self.client.chat.completions.create(**args)
        choice = response.choices[0]

        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments)
            for tc in (choice.message.tool_calls or [])
        ]

        usage = None
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
                model=getattr(response, "model", None) or self.model,
            )

        logger.debug(
            f"{self.model} returned {len(tool_calls)} tool calls "
            f"(finish_reason={choice.finish_reason})"
        )
        return LLMResponse(
            content=choice.message.content,
            tool_calls=tool_calls,
            usage=usage,
            raw_response=response,
        )
