# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .base_tool import BaseTool, Primitive
from .file_tools import ReadFile, WriteFile, ListFiles, FILE_TOOLS
from .http_tools import HttpGet, HTTP_TOOLS
from .universal import UNIVERSAL_CAPABILITIES, UNIVERSAL_CAPABILITY_NAMES

# Built-in primitives, registered in every environment
PRIMITIVES = [*FILE_TOOLS, *HTTP_TOOLS]

__all__ = [
    "BaseTool",
    "Primitive",
    "ReadFile",
    "WriteFile",
    "ListFiles",
    "HttpGet",
    "PRIMITIVES",
    "UNIVERSAL_CAPABILITIES",
    "UNIVERSAL_CAPABILITY_NAMES",
]
