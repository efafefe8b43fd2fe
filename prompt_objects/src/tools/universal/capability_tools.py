# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import Literal
from pydantic import Field

from ..base_tool import BaseTool
from ..file_tools import FILE_TOOLS
from ..http_tools import HTTP_TOOLS
from ...types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class ListCapabilities(BaseTool):
    TOOL_NAME = "list_capabilities"
    TOOL_DESCRIPTION = """List all available capabilities (primitives and prompt objects) in the system.

Useful for discovering what tools exist before asking for new ones."""

    type: Literal["all", "primitives", "prompt_objects"] = Field(
        "all", description="Filter by type. Default is 'all'."
    )

    async def run(self) -> ToolResult:
        registry = self.context.registry if self.context else None
        if registry is None:
            return self.fail("Error: Registry not available")

        if self.type == "primitives":
            capabilities = registry.primitives()
        elif self.type == "prompt_objects":
            capabilities = registry.prompt_objects()
        else:
            capabilities = registry.all()

        if not capabilities:
            return self.ok("No capabilities found.")

        lines = []
        for cap in capabilities:
            label = "[PO]" if cap.is_agent else "[Primitive]"
            lines.append(f"- {cap.name} {label}: {cap.description.splitlines()[0] if cap.description else ''}")
        return self.ok("Available capabilities:\n" + "\n".join(lines))


class AddCapability(BaseTool):
    TOOL_NAME = "add_capability"
    TOOL_DESCRIPTION = """Add a capability to a prompt object, allowing it to use new tools. Can target self or another PO."""

    target: str = Field(
        ...,
        description="Name of the prompt object to add the capability to. Use 'self' for the current PO.",
    )
    capability: str = Field(
        ...,
        description="Name of the capability to add (must already exist in the registry)",
    )

    async def run(self) -> ToolResult:
        registry = self.context.registry if self.context else None
        if registry is None:
            return self.fail("Error: Registry not available")

        target = self.caller if self.target == "self" else self.target
        target_po = registry.get(target)
        if target_po is None:
            return self.fail(f"Error: Prompt object '{target}' not found")
        if not target_po.is_agent:
            return self.fail(
                f"Error: '{target}' is not a prompt object (can only add capabilities to POs)"
            )
        if not registry.exists(self.capability):
            return self.fail(f"Error: Capability '{self.capability}' does not exist")

        if not target_po.add_capability(self.capability):
            return self.ok(f"'{target}' already has the '{self.capability}' capability")

        logger.info(f"Added {self.capability} to {target}")
        message = f"Added '{self.capability}' to '{target}'. It can now use this capability."
        if target_po.save():
            message += f" Saved to {target_po.path}."
        return self.ok(message)


class RemoveCapability(BaseTool):
    TOOL_NAME = "remove_capability"
    TOOL_DESCRIPTION = """Remove a capability from a prompt object's declared capabilities.

The underlying primitive or prompt object is not deleted. Universal capabilities cannot be removed."""

    target: str = Field(
        ...,
        description="Name of the prompt object to remove the capability from. Use 'self' for the current PO.",
    )
    capability: str = Field(..., description="Name of the capability to remove")

    async def run(self) -> ToolResult:
        registry = self.context.registry if self.context else None
        if registry is None:
            return self.fail("Error: Registry not available")

        target = self.caller if self.target == "self" else self.target
        target_po = registry.get(target)
        if target_po is None:
            return self.fail(f"Error: Prompt object '{target}' not found")
        if not target_po.is_agent:
            return self.fail(f"Error: '{target}' is not a prompt object")

        if not target_po.remove_capability(self.capability):
            return self.ok(
                f"'{target}' does not have '{self.capability}' in its declared capabilities."
            )

        logger.info(f"Removed {self.capability} from {target}")
        if target_po.save():
            return self.ok(f"Removed '{self.capability}' from '{target}' and saved to file.")
        return self.ok(f"Removed '{self.capability}' from '{target}' (in-memory only).")


class ListPrimitives(BaseTool):
    TOOL_NAME = "list_primitives"
    TOOL_DESCRIPTION = """List primitives (deterministic Python tools).

Filters: 'available' (all), 'active' (declared on the calling PO), 'stdlib' (built in), 'custom' (registered by the environment)."""

    filter: Literal["available", "active", "stdlib", "custom"] = Field(
        "available", description="Which primitives to list. Default is 'available'."
    )

    async def run(self) -> ToolResult:
        # the universal list is assembled from this module
        from . import UNIVERSAL_CAPABILITY_NAMES

        registry = self.context.registry if self.context else None
        if registry is None:
            return self.fail("Error: Registry not available")

        stdlib_names = [t.TOOL_NAME for t in (*FILE_TOOLS, *HTTP_TOOLS)]
        primitives = [p for p in registry.primitives() if p.name not in UNIVERSAL_CAPABILITY_NAMES]
        stdlib = [p for p in primitives if p.name in stdlib_names]
        custom = [p for p in primitives if p.name not in stdlib_names]

        if self.filter == "stdlib":
            return self.ok(self._section("Stdlib Primitives (built-in)", stdlib))
        if self.filter == "custom":
            if not custom:
                return self.ok("No custom primitives found.")
            return self.ok(self._section("Custom Primitives (environment-specific)", custom))
        if self.filter == "active":
            caller = self.context.calling_agent
            po = registry.get(caller) if caller else None
            if po is None or not po.is_agent:
                return self.fail("Error: No calling prompt object to list active primitives for")
            active = [p for p in primitives if p.name in po.capabilities]
            if not active:
                return self.ok(f"No primitives currently active on {caller}.")
            return self.ok(self._section(f"Active Primitives on {caller}", active))

        sections = []
        if stdlib:
            sections.append(self._section("Stdlib Primitives (built-in)", stdlib))
        if custom:
            sections.append(self._section("Custom Primitives (environment-specific)", custom))
        return self.ok("\n\n".join(sections) or "No primitives available.")

    @staticmethod
    def _section(title: str, primitives: list) -> str:
        if not primitives:
            return f"{title}: (none)"
        lines = [f"## {title}"]
        lines += [f"- **{p.name}**: {p.description.splitlines()[0]}" for p in primitives]
        return "\n".join(lines)
