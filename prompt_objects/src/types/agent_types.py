# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from typing import Optional
from pathlib import Path
from pydantic import BaseModel, Field


class AgentState(str, Enum):
    """Possible states of a prompt object."""

    IDLE = "idle"
    WORKING = "working"
    WAITING_FOR_HUMAN = "waiting_for_human"
    ACTIVE = "active"  # selected by a front end, not running


class ThreadType(str, Enum):
    ROOT = "root"
    CONTINUATION = "continuation"
    DELEGATION = "delegation"
    FORK = "fork"


class AgentConfig(BaseModel):
    """Front matter of an agent definition file."""

    name: str
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)
    model: Optional[str] = None
    max_turns: Optional[int] = None

    class Config:
        extra = "allow"


class AgentDefinition(BaseModel):
    """A parsed agent definition: config record plus behavior template."""

    config: AgentConfig
    body: str
    path: Optional[Path] = None


class DelegationInfo(BaseModel):
    """Who delegated to an agent, used to build the delegation preamble."""

    caller: str
    caller_description: str = ""
    chain: list[str] = Field(default_factory=list)
    parent_thread_id: Optional[str] = None
    parent_message_id: Optional[int] = None
    tool_call_id: Optional[str] = None
