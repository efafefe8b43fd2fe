# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Tools over the shared environment data of a delegation tree.

Every entry is scoped to the root thread of the calling agent's current
thread, so all agents working under one root conversation see the same data
and unrelated conversations see none of it.
"""

import json
import logging

from typing import Any, Optional
from pydantic import Field

from ..base_tool import BaseTool
from ...types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

NO_SCOPE = "Error: Could not resolve thread scope (no active session)"
NO_STORE = "Error: Session store not available"


class EnvDataTool(BaseTool):
    """Shared scope resolution for the env data tools."""

    def resolve_scope(self) -> tuple[Any, Optional[str], Optional[str]]:
        """Returns (store, root thread id, error)."""
        ctx = self.context
        if ctx is None or ctx.store is None:
            return None, None, NO_STORE
        root = ctx.store.resolve_root_thread(ctx.thread_id)
        if root is None:
            return ctx.store, None, NO_SCOPE
        return ctx.store, root, None

    def announce(self, message: dict):
        if self.context and self.context.bus:
            self.context.bus.publish(
                self.caller, "env_data", message, thread_id=self.context.thread_id
            )


class StoreEnvData(EnvDataTool):
    TOOL_NAME = "store_env_data"
    TOOL_DESCRIPTION = """Store a key-value pair in the shared environment data for this delegation chain.

All POs in the same delegation tree can access this data. If the key already exists, it will be overwritten."""

    key: str = Field(
        ..., description="Namespaced identifier for the data (e.g. 'arc_task', 'findings')"
    )
    short_description: str = Field(
        ...,
        description="1-2 sentence summary of what this data contains (for discoverability via list_env_data)",
    )
    value: Any = Field(
        ...,
        description="The data to store (any JSON-serializable value: string, number, object, array)",
    )

    async def run(self) -> ToolResult:
        if not self.key:
            return self.fail("Error: 'key' is required")
        if not self.short_description:
            return self.fail("Error: 'short_description' is required")
        if self.value is None:
            return self.fail("Error: 'value' is required")

        store, root, error = self.resolve_scope()
        if error:
            return self.fail(error)

        store.store_env_data(
            root, self.key, self.short_description, self.value, stored_by=self.caller
        )
        self.announce(
            {"action": "store", "key": self.key, "short_description": self.short_description}
        )
        return self.ok(f"Stored '{self.key}' in environment data.")


class GetEnvData(EnvDataTool):
    TOOL_NAME = "get_env_data"
    TOOL_DESCRIPTION = """Retrieve a specific key's full value from the shared environment data.

Use list_env_data first to see what keys are available."""

    key: str = Field(..., description="The key to retrieve")

    async def run(self) -> ToolResult:
        if not self.key:
            return self.fail("Error: 'key' is required")

        store, root, error = self.resolve_scope()
        if error:
            return self.fail(error)

        entry = store.get_env_data(root, self.key)
        if entry is None:
            return self.fail(f"Key '{self.key}' not found in environment data.")

        self.announce({"action": "get", "key": self.key})
        return self.ok(json.dumps(entry.value))


class ListEnvData(EnvDataTool):
    TOOL_NAME = "list_env_data"
    TOOL_DESCRIPTION = """List all keys and descriptions in the shared environment data for this delegation chain.

Returns keys and short descriptions only (no values). Use get_env_data to retrieve a specific key's full value."""

    async def run(self) -> ToolResult:
        store, root, error = self.resolve_scope()
        if error:
            return self.fail(error)

        entries = store.list_env_data(root)
        if not entries:
            return self.ok("No environment data stored for this delegation chain.")

        self.announce({"action": "list", "count": len(entries)})
        return self.ok(json.dumps(entries))


class UpdateEnvData(EnvDataTool):
    TOOL_NAME = "update_env_data"
    TOOL_DESCRIPTION = """Update an existing key's value and/or description in the shared environment data.

Fails if the key doesn't exist. Use store_env_data to create new entries."""

    key: str = Field(..., description="The key to update (must already exist)")
    short_description: Optional[str] = Field(
        None, description="New description (keeps existing if omitted)"
    )
    value: Any = Field(None, description="New value (keeps existing if omitted)")

    async def run(self) -> ToolResult:
        if not self.key:
            return self.fail("Error: 'key' is required")

        store, root, error = self.resolve_scope()
        if error:
            return self.fail(error)

        changes = {"short_description": self.short_description, "stored_by": self.caller}
        if "value" in self.model_fields_set:
            changes["value"] = self.value
        updated = store.update_env_data(root, self.key, **changes)
        if not updated:
            return self.fail(
                f"Key '{self.key}' not found in environment data. Use store_env_data to create it."
            )

        self.announce({"action": "update", "key": self.key})
        return self.ok(f"Updated '{self.key}' in environment data.")


class DeleteEnvData(EnvDataTool):
    TOOL_NAME = "delete_env_data"
    TOOL_DESCRIPTION = """Delete a key from the shared environment data for this delegation chain."""

    key: str = Field(..., description="The key to delete")

    async def run(self) -> ToolResult:
        if not self.key:
            return self.fail("Error: 'key' is required")

        store, root, error = self.resolve_scope()
        if error:
            return self.fail(error)

        if not store.delete_env_data(root, self.key):
            return self.fail(f"Key '{self.key}' not found in environment data.")

        self.announce({"action": "delete", "key": self.key})
        return self.ok(f"Deleted '{self.key}' from environment data.")


ENV_DATA_TOOLS = [StoreEnvData, GetEnvData, ListEnvData, UpdateEnvData, DeleteEnvData]
