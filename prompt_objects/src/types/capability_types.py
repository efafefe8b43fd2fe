# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from __future__ import annotations

import copy
import logging

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, TYPE_CHECKING

from .tool_types import ToolResult

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def default_parameters() -> dict:
    return {"type": "object", "properties": {}, "required": []}


def sanitize_schema(schema: Any) -> dict:
    """Normalise a parameter schema into something every LLM provider accepts.

    Array-typed properties without an ``items`` entry get ``items: {}``
    (recursively), and anything that is not an object schema degrades to the
    empty property set.
    """
    if not isinstance(schema, dict):
        if schema is not None:
            logger.warning(f"Ignoring malformed parameter schema: {schema!r}")
        return default_parameters()

    result = copy.deepcopy(schema)
    properties = result.get("properties")
    if properties is None:
        properties = {}
    if not isinstance(properties, dict):
        logger.warning(f"Ignoring malformed schema properties: {properties!r}")
        return default_parameters()

    result["type"] = "object"
    result["properties"] = {
        name: _sanitize_property(prop) for name, prop in properties.items()
    }
    required = result.get("required", [])
    if not isinstance(required, list):
        required = []
    result["required"] = [r for r in required if r in result["properties"]]
    return result


def _sanitize_property(prop: Any) -> Any:
    if not isinstance(prop, dict):
        return {}
    prop = dict(prop)
    if prop.get("type") == "array" and "items" not in prop:
        prop["items"] = {}
    if isinstance(prop.get("items"), dict):
        prop["items"] = _sanitize_property(prop["items"])
    if isinstance(prop.get("properties"), dict):
        prop["properties"] = {
            k: _sanitize_property(v) for k, v in prop["properties"].items()
        }
    return prop


class CapabilityKind(str, Enum):
    PRIMITIVE = "primitive"
    AGENT = "agent"


class Capability(ABC):
    """Anything that can be invoked as a tool: a primitive or an agent."""

    kind: CapabilityKind

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    def parameters(self) -> dict:
        return default_parameters()

    @abstractmethod
    async def receive(self, arguments: dict, context: ExecutionContext) -> ToolResult:
        """Invoke the capability with already-validated arguments."""
        pass

    def descriptor(self) -> dict:
        """The function-tool descriptor handed to the LLM."""
        try:
            parameters = sanitize_schema(self.parameters)
        except Exception as e:
            logger.warning(f"Could not build schema for {self.name}: {e}")
            parameters = default_parameters()
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    @property
    def is_agent(self) -> bool:
        return self.kind == CapabilityKind.AGENT

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} ({self.kind.value})>"
