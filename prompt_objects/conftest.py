# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import asyncio

import pytest

from prompt_objects.src.agents.context import ExecutionContext
from prompt_objects.src.coordinator import ToolCoordinator
from prompt_objects.src.events import MessageBus
from prompt_objects.src.human import HumanQueue
from prompt_objects.src.llm.base import LLMClient, LLMResponse, ToolCall, TokenUsage
from prompt_objects.src.registry import Registry
from prompt_objects.src.storage import SessionStore
from prompt_objects.src.tools import Primitive, PRIMITIVES, UNIVERSAL_CAPABILITIES


# Optional: Define custom command-line options for your markers
def pytest_addoption(parser):
    parser.addoption(
        "--run-llm",
        action="store_true",
        default=False,
        help="Run tests marked with 'uses_llm'",
    )
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run tests marked with 'slow'",
    )

# Skip tests based on markers unless the corresponding option is provided
def pytest_collection_modifyitems(config, items):
    if not config.getoption("--run-llm"):
        skip_llm = pytest.mark.skip(reason="need --run-llm option to run")
        for item in items:
            if "uses_llm" in item.keywords:
                item.add_marker(skip_llm)
    if not config.getoption("--run-slow"):
        skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


class ScriptedLLM(LLMClient):
    """
    An LLM client that replays canned responses.

    ``script`` is either a list of responses, consumed in order, or a callable
    ``(system, messages, tools) -> LLMResponse`` for responses that depend on
    the conversation. Every call is recorded in ``calls``.
    """

    def __init__(self, script, model: str = "gpt-4.1-mini", delay: float = 0.0):
        self.model = model
        self.script = script
        self.delay = delay
        self.calls: list[dict] = []

    async def chat(self, system, messages, tools):
        self.calls.append(
            {"system": system, "messages": list(messages), "tools": list(tools)}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if callable(self.script):
            return self.script(system, messages, tools)
        if not self.script:
            return LLMResponse(content="(script exhausted)")
        return self.script.pop(0)


def reply(content: str, input_tokens: int = 10, output_tokens: int = 5) -> LLMResponse:
    return LLMResponse(
        content=content,
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def call(name: str, call_id: str, input_tokens: int = 10, output_tokens: int = 5, **arguments) -> LLMResponse:
    return LLMResponse(
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)],
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
    )


@pytest.fixture
def llm_script():
    """Helpers to build scripted LLMs and their responses."""
    class Helpers:
        ScriptedLLM = ScriptedLLM
        reply = staticmethod(reply)
        call = staticmethod(call)

    return Helpers


@pytest.fixture
def store():
    s = SessionStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def bus(store):
    return MessageBus(store=store)


@pytest.fixture
def registry():
    r = Registry()
    for tool_cls in [*PRIMITIVES, *UNIVERSAL_CAPABILITIES]:
        r.register(Primitive(tool_cls))
    return r


@pytest.fixture
def context(store, bus, registry):
    return ExecutionContext(
        store=store,
        bus=bus,
        registry=registry,
        human_queue=HumanQueue(),
        coordinator=ToolCoordinator(registry, bus, concurrent=True, max_concurrency=5),
    )
