# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""LLM integration module.

The runtime depends only on the ``LLMClient.chat`` contract; provider
adapters translate to and from their native wire formats.
"""

import logging

from .base import LLMClient, LLMResponse, Message, ToolCall, TokenUsage
from .openai_client import OpenAIClient
from .pricing import estimate_cost, known_model

# Quieten LLM API call logs to make stdout more useful
logging.getLogger("httpx").setLevel(logging.WARNING)

__all__ = [
    "LLMClient",
    "LLMResponse",
    "Message",
    "ToolCall",
    "TokenUsage",
    "OpenAIClient",
    "estimate_cost",
    "known_model",
]
