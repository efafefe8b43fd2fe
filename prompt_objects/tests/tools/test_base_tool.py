# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the BaseTool class and the Primitive capability wrapper."""
import pytest
from typing import Optional

from pydantic import Field

from prompt_objects.src.agents.context import ExecutionContext
from prompt_objects.src.registry import Registry
from prompt_objects.src.tools.base_tool import BaseTool, Primitive
from prompt_objects.src.types.capability_types import CapabilityKind
from prompt_objects.src.types.errors import InvalidError
from prompt_objects.src.types.tool_types import ToolResult


class TestBaseTool:
    """Test suite for BaseTool class."""

    def test_tools_are_only_available_once_registered(self):
        class Fresh(BaseTool):
            TOOL_NAME = "fresh_tool"
            TOOL_DESCRIPTION = "Defined but not yet registered"

            async def run(self) -> ToolResult:
                return self.ok()

        first, second = Registry(), Registry()
        assert not first.exists("fresh_tool")

        first.register(Primitive(Fresh))
        assert first.exists("fresh_tool")
        assert not second.exists("fresh_tool")

    def test_parameters_schema(self):
        """Test that the parameter schema is derived from the fields."""
        class SchemaTool(BaseTool):
            TOOL_NAME = "schema_tool"
            TOOL_DESCRIPTION = "Has parameters"

            query: str = Field(..., description="What to look for")
            limit: int = Field(10, description="Maximum results")
            tags: Optional[list[str]] = Field(None, description="Filter tags")

            async def run(self) -> ToolResult:
                return self.ok()

        schema = SchemaTool.parameters()
        assert schema["type"] == "object"
        assert schema["required"] == ["query"]
        assert schema["properties"]["query"] == {"type": "string", "description": "What to look for"}
        assert "title" not in schema
        assert "title" not in schema["properties"]["limit"]

    def test_extra_fields_forbidden(self):
        class StrictTool(BaseTool):
            TOOL_NAME = "strict_tool"
            TOOL_DESCRIPTION = "Strict"

            value: int

            async def run(self) -> ToolResult:
                return self.ok(self.value)

        with pytest.raises(Exception):
            StrictTool(value=1, surprise=True)

    def test_caller_resolution(self):
        class WhoTool(BaseTool):
            TOOL_NAME = "who_tool"
            TOOL_DESCRIPTION = "Reports the caller"

            async def run(self) -> ToolResult:
                return self.ok(self.caller)

        assert WhoTool().caller == "unknown"
        assert WhoTool(context=ExecutionContext(current_capability="who_tool")).caller == "who_tool"
        assert WhoTool(context=ExecutionContext(calling_agent="solver", current_capability="who_tool")).caller == "solver"

    def test_ok_and_fail(self):
        class ResultTool(BaseTool):
            TOOL_NAME = "result_tool"
            TOOL_DESCRIPTION = "Makes results"

            async def run(self) -> ToolResult:
                return self.ok()

        tool = ResultTool()
        ok = tool.ok("fine", warnings="careful")
        assert ok.success and ok.output == "fine" and ok.warnings == "careful"

        failed = tool.fail("broken")
        assert not failed.success
        assert failed.content == "Error: broken"
        assert tool.fail("Error: already prefixed").content == "Error: already prefixed"


class TestPrimitive:
    """The capability wrapper around a tool class."""

    @pytest.mark.asyncio
    async def test_receive_builds_and_runs_the_tool(self):
        class Add(BaseTool):
            TOOL_NAME = "add"
            TOOL_DESCRIPTION = "Add two integers.\n\nLonger explanation."

            a: int
            b: int

            async def run(self) -> ToolResult:
                return self.ok(str(self.a + self.b))

        primitive = Primitive(Add)
        assert primitive.name == "add"
        assert primitive.kind == CapabilityKind.PRIMITIVE
        assert not primitive.is_agent
        assert primitive.descriptor()["function"]["parameters"]["required"] == ["a", "b"]

        result = await primitive.receive({"a": 2, "b": 3}, ExecutionContext())
        assert result.output == "5"
        assert result.tool_name == "add"

        with pytest.raises(InvalidError):
            await primitive.receive({"a": "two", "b": 3}, ExecutionContext())

    @pytest.mark.asyncio
    async def test_context_reaches_the_tool(self):
        class Where(BaseTool):
            TOOL_NAME = "where"
            TOOL_DESCRIPTION = "Reports the thread"

            async def run(self) -> ToolResult:
                return self.ok(self.context.thread_id)

        result = await Primitive(Where).receive({}, ExecutionContext(thread_id="t-42"))
        assert result.output == "t-42"


class TestToolResult:
    """Message shapes produced from results."""

    def test_content_of_structured_output(self):
        result = ToolResult(tool_name="x", success=True, output={"a": 1})
        assert result.content == '{"a": 1}'
        assert ToolResult(tool_name="x", success=True).content == ""

    def test_to_message_result(self):
        result = ToolResult.failure("read_file", "Error: File not found: a.txt", call_id="c9")
        assert result.to_message_result() == {
            "tool_call_id": "c9",
            "name": "read_file",
            "content": "Error: File not found: a.txt",
            "success": False,
        }
