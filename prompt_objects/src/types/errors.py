# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Exception taxonomy for the runtime."""


class PromptObjectsError(Exception):
    """Base class for all runtime errors."""


class NotFoundError(PromptObjectsError):
    """An unknown capability, thread or environment data key."""


class CycleError(PromptObjectsError):
    """A capability was pushed onto a delegation stack that already holds it."""

    def __init__(self, name: str, stack: list[str]):
        self.name = name
        self.stack = list(stack)
        chain = " -> ".join(self.stack + [name])
        super().__init__(f"Delegation cycle detected: {chain}")


class InvalidError(PromptObjectsError):
    """Malformed schema, parameters or registration."""


class UnresolvedEscalationError(PromptObjectsError):
    """A human request was read before anyone responded to it."""


class ToolFailureError(PromptObjectsError):
    """An individual tool call raised while executing."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"{tool_name} failed: {message}")


class StoreUnavailableError(PromptObjectsError):
    """The session store could not be opened, migrated or written."""
