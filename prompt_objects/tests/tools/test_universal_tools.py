# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the capabilities every prompt object gets."""
import json
import asyncio

import pytest

from prompt_objects.src.agents.context import ExecutionContext
from prompt_objects.src.agents.loader import load_definition
from prompt_objects.src.agents.prompt_object import PromptObject
from prompt_objects.src.human import HumanQueue
from prompt_objects.src.tools.base_tool import BaseTool, Primitive
from prompt_objects.src.tools.universal import (
    AskHuman,
    Think,
    ListCapabilities,
    AddCapability,
    RemoveCapability,
    ListPrimitives,
    StoreEnvData,
    GetEnvData,
    ListEnvData,
    UpdateEnvData,
    DeleteEnvData,
    UNIVERSAL_CAPABILITY_NAMES,
)
from prompt_objects.src.types.agent_types import AgentConfig, AgentState
from prompt_objects.src.types.tool_types import ToolResult


def make_po(name, capabilities=None):
    config = AgentConfig(name=name, description=f"{name} does things.\nSecond line.", capabilities=capabilities or [])
    return PromptObject(config=config, body="", llm=None)


def test_universal_names():
    assert UNIVERSAL_CAPABILITY_NAMES == [
        "ask_human",
        "think",
        "list_capabilities",
        "list_primitives",
        "add_capability",
        "remove_capability",
        "store_env_data",
        "get_env_data",
        "list_env_data",
        "update_env_data",
        "delete_env_data",
    ]


class TestAskHuman:
    """Escalation to a human, suspended or direct."""

    @pytest.mark.asyncio
    async def test_interactive_suspends_only_the_asker(self, context):
        po = make_po("planner")
        context.registry.register(po)
        queue = context.human_queue
        ctx = context.derive(interactive=True, calling_agent="planner")

        task = asyncio.create_task(AskHuman(context=ctx, question="Proceed?", options="yes, no").run())
        await asyncio.sleep(0.01)

        assert not task.done()
        assert queue.count == 1
        request = queue.pending_for("planner")[0]
        assert request.options == ["yes", "no"]
        assert po.state == AgentState.WAITING_FOR_HUMAN

        queue.respond(request.id, "yes")
        result = await asyncio.wait_for(task, 1)
        assert result.output == "yes"
        assert po.state == AgentState.IDLE

        messages = [(e.from_, e.to, e.message) for e in context.bus.entries]
        assert ("planner", "human", "[waiting] Proceed?") in messages
        assert ("human", "planner", "yes") in messages

    @pytest.mark.asyncio
    async def test_direct_prompt_maps_numeric_choice(self):
        prompts = []

        def prompt(text):
            prompts.append(text)
            return "2"

        ctx = ExecutionContext(calling_agent="planner", prompt=prompt)
        result = await AskHuman(context=ctx, question="Which?", options=["red", "blue"]).run()

        assert result.output == "blue"
        assert prompts[0].startswith("planner asks: Which?")
        assert "  [1] red" in prompts[0]
        assert prompts[0].endswith("Your choice (1-2): ")

    @pytest.mark.asyncio
    async def test_direct_prompt_free_text(self):
        async def prompt(text):
            return "  whatever you think  "

        ctx = ExecutionContext(calling_agent="planner", prompt=prompt)
        result = await AskHuman(context=ctx, question="Thoughts?").run()
        assert result.output == "whatever you think"

    @pytest.mark.asyncio
    async def test_out_of_range_choice_is_kept_verbatim(self):
        ctx = ExecutionContext(calling_agent="planner", prompt=lambda text: "7")
        result = await AskHuman(context=ctx, question="Which?", options=["a", "b"]).run()
        assert result.output == "7"


class TestThink:

    @pytest.mark.asyncio
    async def test_thought_is_published(self, context):
        ctx = context.derive(calling_agent="solver", thread_id="t1")
        result = await Think(context=ctx, thought="Try the small case first").run()

        assert result.output == "Thought recorded."
        entry = context.bus.entries[-1]
        assert (entry.from_, entry.to, entry.message, entry.thread_id) == (
            "solver", "thought", "Try the small case first", "t1",
        )


class TestCapabilityTools:
    """Discovery and self-modification."""

    @pytest.mark.asyncio
    async def test_list_capabilities(self, context):
        context.registry.register(make_po("solver"))

        listing = (await ListCapabilities(context=context).run()).output
        assert listing.startswith("Available capabilities:")
        assert "- read_file [Primitive]: Read the contents of a text file." in listing
        assert "- solver [PO]: solver does things." in listing

        only_pos = (await ListCapabilities(context=context, type="prompt_objects").run()).output
        assert only_pos == "Available capabilities:\n- solver [PO]: solver does things."

    @pytest.mark.asyncio
    async def test_list_without_registry(self):
        result = await ListCapabilities(context=ExecutionContext()).run()
        assert result.content == "Error: Registry not available"

    @pytest.mark.asyncio
    async def test_add_capability_to_self(self, context):
        po = make_po("solver")
        context.registry.register(po)
        ctx = context.derive(calling_agent="solver")

        result = await AddCapability(context=ctx, target="self", capability="write_file").run()
        assert result.output == "Added 'write_file' to 'solver'. It can now use this capability."
        assert "write_file" in po.allowed_capabilities()

        again = await AddCapability(context=ctx, target="solver", capability="write_file").run()
        assert again.output == "'solver' already has the 'write_file' capability"

    @pytest.mark.asyncio
    async def test_add_capability_errors(self, context):
        context.registry.register(make_po("solver"))

        missing_po = await AddCapability(context=context, target="ghost", capability="read_file").run()
        assert missing_po.content == "Error: Prompt object 'ghost' not found"

        primitive = await AddCapability(context=context, target="read_file", capability="write_file").run()
        assert primitive.content.startswith("Error: 'read_file' is not a prompt object")

        missing_cap = await AddCapability(context=context, target="solver", capability="teleport").run()
        assert missing_cap.content == "Error: Capability 'teleport' does not exist"

    @pytest.mark.asyncio
    async def test_remove_capability(self, context):
        po = make_po("solver", ["read_file", "write_file"])
        context.registry.register(po)
        ctx = context.derive(calling_agent="solver")

        result = await RemoveCapability(context=ctx, target="self", capability="write_file").run()
        assert result.output == "Removed 'write_file' from 'solver' (in-memory only)."
        assert po.capabilities == ["read_file"]
        assert "write_file" not in po.allowed_capabilities()

        again = await RemoveCapability(context=ctx, target="solver", capability="write_file").run()
        assert again.output == "'solver' does not have 'write_file' in its declared capabilities."

        primitive = await RemoveCapability(context=ctx, target="read_file", capability="x").run()
        assert primitive.content == "Error: 'read_file' is not a prompt object"

    @pytest.mark.asyncio
    async def test_capability_edits_are_saved_to_the_definition(self, context, tmp_path):
        path = tmp_path / "solver.md"
        path.write_text("---\nname: solver\ndescription: Solves things\ncapabilities:\n  - read_file\n---\nYou solve things.\n")
        definition = load_definition(path)
        po = PromptObject(config=definition.config, body=definition.body, llm=None, path=definition.path)
        context.registry.register(po)
        ctx = context.derive(calling_agent="solver")

        added = await AddCapability(context=ctx, target="self", capability="http_get").run()
        assert added.output.endswith(f"Saved to {path}.")
        assert load_definition(path).config.capabilities == ["read_file", "http_get"]

        removed = await RemoveCapability(context=ctx, target="self", capability="read_file").run()
        assert removed.output == "Removed 'read_file' from 'solver' and saved to file."
        reloaded = load_definition(path)
        assert reloaded.config.capabilities == ["http_get"]
        assert reloaded.body == "You solve things."


class TestListPrimitives:
    """Primitive discovery by filter."""

    @pytest.mark.asyncio
    async def test_available_excludes_universal_capabilities(self, context):
        listing = (await ListPrimitives(context=context).run()).output

        assert listing.startswith("## Stdlib Primitives (built-in)")
        assert "- **read_file**: Read the contents of a text file." in listing
        assert "- **http_get**: Fetch content from a URL via HTTP GET request." in listing
        assert "think" not in listing
        assert "Custom" not in listing

    @pytest.mark.asyncio
    async def test_custom_and_active(self, context):
        class Shout(BaseTool):
            TOOL_NAME = "shout"
            TOOL_DESCRIPTION = "Upper-cases text."

            async def run(self) -> ToolResult:
                return self.ok()

        context.registry.register(Primitive(Shout))
        context.registry.register(make_po("solver", ["shout", "read_file", "think"]))

        custom = (await ListPrimitives(context=context, filter="custom").run()).output
        assert custom == "## Custom Primitives (environment-specific)\n- **shout**: Upper-cases text."

        ctx = context.derive(calling_agent="solver")
        active = (await ListPrimitives(context=ctx, filter="active").run()).output
        assert active == (
            "## Active Primitives on solver\n"
            "- **read_file**: Read the contents of a text file.\n"
            "- **shout**: Upper-cases text."
        )

    @pytest.mark.asyncio
    async def test_no_custom_primitives(self, context):
        result = await ListPrimitives(context=context, filter="custom").run()
        assert result.output == "No custom primitives found."

    @pytest.mark.asyncio
    async def test_active_needs_a_calling_prompt_object(self, context):
        result = await ListPrimitives(context=context, filter="active").run()
        assert not result.success


class TestEnvDataTools:
    """Environment data scoped to the delegation tree."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_across_a_tree(self, context, store):
        t1 = store.create_thread("coordinator")
        t2 = store.create_thread("solver", parent_thread_id=t1, thread_type="delegation")
        t3 = store.create_thread("checker", parent_thread_id=t2, thread_type="delegation")
        in_t2 = context.derive(calling_agent="solver", thread_id=t2)
        in_t3 = context.derive(calling_agent="checker", thread_id=t3)

        stored = await StoreEnvData(
            context=in_t2, key="task", short_description="The puzzle", value={"grid": [[1, 0]]}
        ).run()
        assert stored.output == "Stored 'task' in environment data."

        got = await GetEnvData(context=in_t3, key="task").run()
        assert json.loads(got.output) == {"grid": [[1, 0]]}

        listing = json.loads((await ListEnvData(context=in_t3).run()).output)
        assert listing[0]["key"] == "task"
        assert listing[0]["stored_by"] == "solver"
        assert "value" not in listing[0]

        updated = await UpdateEnvData(context=in_t3, key="task", value={"grid": [[1, 1]]}).run()
        assert updated.output == "Updated 'task' in environment data."
        entry = store.get_env_data(t1, "task")
        assert entry.value == {"grid": [[1, 1]]}
        assert entry.short_description == "The puzzle"

        deleted = await DeleteEnvData(context=in_t2, key="task").run()
        assert deleted.output == "Deleted 'task' from environment data."
        assert store.get_env_data(t1, "task") is None

    @pytest.mark.asyncio
    async def test_unrelated_tree_sees_nothing(self, context, store):
        t1 = store.create_thread("coordinator")
        other = store.create_thread("coordinator")
        await StoreEnvData(
            context=context.derive(thread_id=t1), key="k", short_description="d", value=1
        ).run()

        in_other = context.derive(thread_id=other)
        assert (await ListEnvData(context=in_other).run()).output == "No environment data stored for this delegation chain."
        missing = await GetEnvData(context=in_other, key="k").run()
        assert missing.content == "Error: Key 'k' not found in environment data."

    @pytest.mark.asyncio
    async def test_update_and_delete_missing(self, context, store):
        ctx = context.derive(thread_id=store.create_thread("a"))

        update = await UpdateEnvData(context=ctx, key="nope", value=1).run()
        assert not update.success
        assert "Use store_env_data to create it." in update.content

        delete = await DeleteEnvData(context=ctx, key="nope").run()
        assert not delete.success

    @pytest.mark.asyncio
    async def test_update_distinguishes_null_from_omitted(self, context, store):
        ctx = context.derive(thread_id=store.create_thread("a"), calling_agent="a")
        await StoreEnvData(context=ctx, key="k", short_description="d", value={"v": 1}).run()

        kept = await UpdateEnvData(context=ctx, key="k", short_description="renamed").run()
        assert kept.success
        assert (await GetEnvData(context=ctx, key="k").run()).output == '{"v": 1}'

        cleared = await UpdateEnvData(context=ctx, key="k", value=None).run()
        assert cleared.success
        entry = store.get_env_data(ctx.thread_id, "k")
        assert entry.value is None
        assert entry.short_description == "renamed"

    @pytest.mark.asyncio
    async def test_scope_errors(self, context, store):
        no_thread = await ListEnvData(context=context).run()
        assert no_thread.content == "Error: Could not resolve thread scope (no active session)"

        no_store = await ListEnvData(context=ExecutionContext(thread_id="t")).run()
        assert no_store.content == "Error: Session store not available"

    @pytest.mark.asyncio
    async def test_store_requires_a_value(self, context, store):
        ctx = context.derive(thread_id=store.create_thread("a"))
        result = await StoreEnvData(context=ctx, key="k", short_description="d", value=None).run()
        assert result.content == "Error: 'value' is required"

    @pytest.mark.asyncio
    async def test_changes_are_announced(self, context, store):
        ctx = context.derive(calling_agent="solver", thread_id=store.create_thread("solver"))
        await StoreEnvData(context=ctx, key="k", short_description="d", value=[1]).run()

        entry = context.bus.entries[-1]
        assert entry.from_ == "solver"
        assert entry.to == "env_data"
        assert entry.message == {"action": "store", "key": "k", "short_description": "d"}
