# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The agents module defines prompt objects: LLM-backed capabilities whose
behavior is a natural-language template, and which can call primitives and
each other as tools.

A prompt object is invoked either directly (a human message, through
``PromptObject.run``) or by another prompt object (a delegation, through
``PromptObject.receive``). A delegation always runs in a fresh child thread
whose lineage points back at the caller's thread and the exact tool call that
triggered it. The call's thread id, history and delegation stack travel in an
``ExecutionContext``; nothing about a call in flight is stored on the prompt
object itself.
"""

from .context import ExecutionContext
from .prompt_object import PromptObject
from .loader import load_definition, load_definitions, parse_definition

__all__ = [
    "ExecutionContext",
    "PromptObject",
    "load_definition",
    "load_definitions",
    "parse_definition",
]
