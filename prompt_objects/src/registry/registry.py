# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""The capability registry and its cached invocation adapters."""

from __future__ import annotations

import time
import logging

from typing import Iterable, Optional, TYPE_CHECKING

from ..types.capability_types import Capability, CapabilityKind
from ..types.errors import InvalidError
from ..types.tool_types import ToolResult

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class CapabilityAdapter:
    """A uniform ``invoke`` entry point over one capability.

    Agents take a single natural-language ``message``; primitives take the
    named parameters declared in their schema.
    """

    def __init__(self, capability: Capability):
        self.capability = capability
        self.name = capability.name
        self.descriptor = capability.descriptor()
        parameters = self.descriptor["function"]["parameters"]
        self.parameter_names: list[str] = list(parameters["properties"].keys())
        self.required: list[str] = list(parameters["required"])

    def prepare_arguments(self, arguments: dict | str | None) -> dict:
        if arguments is None:
            arguments = {}

        if self.capability.kind == CapabilityKind.AGENT:
            if isinstance(arguments, str):
                return {"message": arguments}
            message = arguments.get("message")
            if message is None:
                raise InvalidError(f"{self.name} requires a 'message' argument")
            return {"message": str(message)}

        if not isinstance(arguments, dict):
            raise InvalidError(
                f"{self.name} expects named arguments, got {type(arguments).__name__}"
            )
        missing = [r for r in self.required if r not in arguments]
        if missing:
            raise InvalidError(f"{self.name} is missing required arguments: {', '.join(missing)}")

        unknown = [k for k in arguments if k not in self.parameter_names]
        if unknown:
            logger.warning(f"Dropping unknown arguments for {self.name}: {unknown}")
        return {k: v for k, v in arguments.items() if k in self.parameter_names}

    async def invoke(self, arguments: dict | str | None, context: ExecutionContext) -> ToolResult:
        prepared = self.prepare_arguments(arguments)
        start = time.perf_counter()
        result = await self.capability.receive(prepared, context)
        result.duration = time.perf_counter() - start
        return result


class BoundTool:
    """An adapter paired with the context it will run in."""

    def __init__(self, adapter: CapabilityAdapter, context: ExecutionContext):
        self.adapter = adapter
        self.context = context

    @property
    def name(self) -> str:
        return self.adapter.name

    @property
    def descriptor(self) -> dict:
        return self.adapter.descriptor

    async def invoke(self, arguments: dict | str | None = None) -> ToolResult:
        return await self.adapter.invoke(arguments, self.context)


class Registry:
    """
    Holds every capability known to an environment.

    One instance is constructed at environment startup and passed by
    reference to whatever needs capability lookup.
    """

    def __init__(self):
        self._capabilities: dict[str, Capability] = {}
        self._adapters: dict[str, CapabilityAdapter] = {}

    def register(self, capability: Capability) -> Capability:
        if not isinstance(capability, Capability):
            raise InvalidError(f"Cannot register {capability!r}: not a capability")
        if not capability.name:
            raise InvalidError("Cannot register a capability without a name")

        if capability.name in self._capabilities:
            logger.debug(f"Replacing capability {capability.name}")
        self._capabilities[capability.name] = capability
        self._adapters.pop(capability.name, None)
        return capability

    def unregister(self, name: str) -> Optional[Capability]:
        self._adapters.pop(name, None)
        return self._capabilities.pop(name, None)

    def get(self, name: str) -> Optional[Capability]:
        return self._capabilities.get(name)

    def exists(self, name: str) -> bool:
        return name in self._capabilities

    def all(self) -> list[Capability]:
        return list(self._capabilities.values())

    def names(self) -> list[str]:
        return list(self._capabilities.keys())

    def prompt_objects(self) -> list[Capability]:
        return [c for c in self._capabilities.values() if c.kind == CapabilityKind.AGENT]

    def primitives(self) -> list[Capability]:
        return [c for c in self._capabilities.values() if c.kind == CapabilityKind.PRIMITIVE]

    def adapter_for(self, name: str) -> Optional[CapabilityAdapter]:
        """The cached adapter for ``name``, built on first use."""
        adapter = self._adapters.get(name)
        if adapter is not None:
            return adapter

        capability = self.get(name)
        if capability is None:
            return None
        adapter = CapabilityAdapter(capability)
        self._adapters[name] = adapter
        return adapter

    def tool_classes_for(
        self, names: Iterable[str], context: ExecutionContext
    ) -> list[BoundTool]:
        tools = []
        for name in names:
            adapter = self.adapter_for(name)
            if adapter is None:
                logger.debug(f"No capability named {name}, skipping")
                continue
            tools.append(BoundTool(adapter, context))
        return tools

    def descriptors_for(self, names: Iterable[str]) -> list[dict]:
        descriptors = []
        seen = set()
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            adapter = self.adapter_for(name)
            if adapter is not None:
                descriptors.append(adapter.descriptor)
        return descriptors

    def all_descriptors(self) -> list[dict]:
        return self.descriptors_for(self.names())

    def __contains__(self, name: str) -> bool:
        return self.exists(name)

    def __len__(self) -> int:
        return len(self._capabilities)
