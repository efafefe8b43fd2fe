# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The main entrypoint to the system.
"""

import logging

from pathlib import Path
from typing import Callable, Optional, Union

from .src.agents.context import ExecutionContext
from .src.agents.loader import load_definitions
from .src.agents.prompt_object import PromptObject
from .src.config import settings
from .src.coordinator import ToolCoordinator
from .src.events import MessageBus
from .src.events.message_bus_utils import log_entry
from .src.human import HumanQueue
from .src.llm import LLMClient, OpenAIClient
from .src.registry import Registry
from .src.storage import SessionStore
from .src.tools import Primitive, PRIMITIVES, UNIVERSAL_CAPABILITIES
from .src.types.agent_types import AgentConfig, AgentDefinition
from .src.types.errors import NotFoundError


# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


class Environment:
    """
    The Environment class acts as the 'root' of the application state. It
    builds one of each runtime component, registers the built-in primitives
    and universal capabilities, and loads the prompt object definitions.
    """

    def __init__(
        self,
        objects_dir: Optional[Union[str, Path]] = None,
        db_path: Optional[Union[str, Path]] = None,
        llm: Optional[LLMClient] = None,
        llm_factory: Optional[Callable[[AgentConfig], LLMClient]] = None,
        interactive: Optional[bool] = None,
        concurrent: Optional[bool] = None,
        max_concurrency: Optional[int] = None,
        prompt: Callable[[str], str] = input,
        log_bus: bool = True,
    ):
        """
        Args:
            objects_dir: Directory of prompt object definition files
            db_path: Session store location; ":memory:" for an ephemeral one
            llm: A single client shared by every prompt object
            llm_factory: Builds a client per prompt object (used when llm is None)
            interactive: Whether human escalations suspend on the queue
            concurrent: Whether a turn's tool calls may run concurrently
            max_concurrency: Most tool calls in flight per turn
            prompt: Direct prompt used for escalations when not interactive
            log_bus: Mirror message bus traffic into the log
        """
        self.store = SessionStore(db_path if db_path is not None else settings.DB_PATH)
        self.bus = MessageBus(store=self.store)
        if log_bus:
            self.bus.subscribe(log_entry)

        self.registry = Registry()
        self.human_queue = HumanQueue()
        self.coordinator = ToolCoordinator(
            self.registry,
            self.bus,
            max_concurrency=max_concurrency,
            concurrent=concurrent,
            call_timeout=settings.TOOL_CALL_TIMEOUT,
        )
        self.interactive = settings.INTERACTIVE if interactive is None else interactive
        self.prompt = prompt

        self._llm = llm
        self._llm_factory = llm_factory

        for tool_cls in [*PRIMITIVES, *UNIVERSAL_CAPABILITIES]:
            self.registry.register(Primitive(tool_cls))

        self.objects_dir = Path(objects_dir) if objects_dir is not None else None
        if self.objects_dir is not None:
            self.load_objects(self.objects_dir)

    def llm_for(self, config: AgentConfig) -> LLMClient:
        if self._llm is not None:
            return self._llm
        if self._llm_factory is not None:
            return self._llm_factory(config)
        return OpenAIClient(model=config.model)

    def add_prompt_object(self, definition: AgentDefinition) -> PromptObject:
        po = PromptObject(
            config=definition.config,
            body=definition.body,
            llm=self.llm_for(definition.config),
            path=definition.path,
        )
        self.registry.register(po)
        return po

    def load_objects(self, directory: Union[str, Path]) -> list[PromptObject]:
        loaded = [self.add_prompt_object(d) for d in load_definitions(directory)]
        logger.info(f"Registered prompt objects: {', '.join(p.name for p in loaded) or '(none)'}")
        return loaded

    def get_prompt_object(self, name: str) -> PromptObject:
        capability = self.registry.get(name)
        if not isinstance(capability, PromptObject):
            raise NotFoundError(f"No prompt object named {name}")
        return capability

    def context(self, thread_id: Optional[str] = None) -> ExecutionContext:
        return ExecutionContext(
            store=self.store,
            bus=self.bus,
            registry=self.registry,
            human_queue=self.human_queue,
            coordinator=self.coordinator,
            thread_id=thread_id,
            interactive=self.interactive,
            prompt=self.prompt,
        )

    async def send(
        self,
        agent_name: str,
        message: str,
        thread_id: Optional[str] = None,
        source: str = "api",
    ) -> str:
        """
        Send a human message to a prompt object and wait for its reply.

        Continues ``thread_id`` when given, otherwise the prompt object's most
        recent root thread (creating one if it has none).

        Raises:
            NotFoundError: for an unknown prompt object or thread
        """
        po = self.get_prompt_object(agent_name)

        if thread_id is None:
            thread_id = self.store.get_or_create_thread(agent_name, source=source).id
        elif self.store.get_thread(thread_id) is None:
            raise NotFoundError(f"Thread {thread_id} does not exist")

        context = self.context(thread_id)
        context.push(agent_name)

        self.bus.publish("human", agent_name, message, thread_id=thread_id)
        reply = await po.run(message, thread_id, context, source=source)
        self.bus.publish(agent_name, "human", reply, thread_id=thread_id)
        return reply

    def close(self):
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
