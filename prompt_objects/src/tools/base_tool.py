# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import Any, ClassVar, Optional, TYPE_CHECKING
from pydantic import PrivateAttr, ValidationError

from ..types.tool_types import ToolInterface, ToolResult
from ..types.capability_types import Capability, CapabilityKind, sanitize_schema
from ..types.errors import InvalidError

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _strip_titles(schema):
    """Drop pydantic's generated ``title`` keys, which LLM providers ignore."""
    if isinstance(schema, dict):
        return {
            k: _strip_titles(v)
            for k, v in schema.items()
            if not (k == "title" and isinstance(v, str))
        }
    if isinstance(schema, list):
        return [_strip_titles(v) for v in schema]
    return schema


class BaseTool(ToolInterface):
    """Abstract base class for all code-defined primitives"""

    # Class variables for tool metadata
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    _context: Any = PrivateAttr(default=None)

    def __init__(self, context: Optional["ExecutionContext"] = None, **data):
        super().__init__(**data)
        self._context = context

    @property
    def context(self) -> Optional["ExecutionContext"]:
        return self._context

    @property
    def caller(self) -> str:
        """The agent on whose behalf this tool runs."""
        if self._context is None:
            return "unknown"
        return self._context.calling_agent or self._context.current_capability or "unknown"

    def fail(self, errors: str) -> ToolResult:
        return ToolResult.failure(self.TOOL_NAME, errors)

    def ok(self, output=None, warnings: str | None = None) -> ToolResult:
        return ToolResult(
            tool_name=self.TOOL_NAME, success=True, output=output, warnings=warnings
        )

    @classmethod
    def parameters(cls) -> dict:
        return sanitize_schema(_strip_titles(cls.model_json_schema()))


class Primitive(Capability):
    """Exposes a ``BaseTool`` subclass as a registrable capability."""

    kind = CapabilityKind.PRIMITIVE

    def __init__(self, tool_cls: type[BaseTool]):
        self.tool_cls = tool_cls

    @property
    def name(self) -> str:
        return self.tool_cls.TOOL_NAME

    @property
    def description(self) -> str:
        return self.tool_cls.TOOL_DESCRIPTION

    @property
    def parameters(self) -> dict:
        return self.tool_cls.parameters()

    async def receive(self, arguments: dict, context: "ExecutionContext") -> ToolResult:
        try:
            tool = self.tool_cls(context=context, **arguments)
        except ValidationError as e:
            raise InvalidError(f"Invalid arguments for {self.name}: {e}") from e

        result = await tool.run()
        result.tool_name = self.name
        return result
