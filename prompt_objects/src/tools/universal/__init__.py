# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Capabilities available to every prompt object without declaring them."""

from .ask_human import AskHuman
from .think import Think
from .capability_tools import ListCapabilities, ListPrimitives, AddCapability, RemoveCapability
from .env_data_tools import (
    StoreEnvData,
    GetEnvData,
    ListEnvData,
    UpdateEnvData,
    DeleteEnvData,
    ENV_DATA_TOOLS,
)

UNIVERSAL_CAPABILITIES = [
    AskHuman,
    Think,
    ListCapabilities,
    ListPrimitives,
    AddCapability,
    RemoveCapability,
    *ENV_DATA_TOOLS,
]

UNIVERSAL_CAPABILITY_NAMES = [t.TOOL_NAME for t in UNIVERSAL_CAPABILITIES]

__all__ = [
    "AskHuman",
    "Think",
    "ListCapabilities",
    "ListPrimitives",
    "AddCapability",
    "RemoveCapability",
    "StoreEnvData",
    "GetEnvData",
    "ListEnvData",
    "UpdateEnvData",
    "DeleteEnvData",
    "UNIVERSAL_CAPABILITIES",
    "UNIVERSAL_CAPABILITY_NAMES",
]
