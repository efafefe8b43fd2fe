# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import math
import logging

from pathlib import Path
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_READ_CHARS = 50_000


def human_size(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    exp = min(int(math.log(num_bytes, 1024)), len(units) - 1)
    return f"{num_bytes / (1024 ** exp):.1f} {units[exp]}"


class ReadFile(BaseTool):
    TOOL_NAME = "read_file"
    TOOL_DESCRIPTION = """Read the contents of a text file.

Very large files are truncated to the first 50,000 characters."""

    path: str = Field(..., description="The path to the file to read")

    async def run(self) -> ToolResult:
        path = Path(self.path).expanduser()
        if not path.exists():
            return self.fail(f"Error: File not found: {self.path}")
        if not path.is_file():
            return self.fail(f"Error: Not a file: {self.path}")

        try:
            content = path.read_text(encoding="utf-8")
        except PermissionError:
            return self.fail(f"Error: Permission denied: {self.path}")
        except (OSError, UnicodeDecodeError) as e:
            return self.fail(f"Error reading file: {e}")

        if len(content) > MAX_READ_CHARS:
            content = (
                content[:MAX_READ_CHARS]
                + f"\n\n... [truncated, file is {len(content)} bytes]"
            )
        return self.ok(content)


class WriteFile(BaseTool):
    TOOL_NAME = "write_file"
    TOOL_DESCRIPTION = """Write content to a file (creates or overwrites).

Parent directories are created as needed."""

    path: str = Field(..., description="The path to the file to write")
    content: str = Field(..., description="The content to write to the file")

    async def run(self) -> ToolResult:
        if not self.path:
            return self.fail("Error: path is required")

        path = Path(self.path).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.content, encoding="utf-8")
        except PermissionError:
            return self.fail(f"Error: Permission denied: {self.path}")
        except OSError as e:
            return self.fail(f"Error writing file: {e}")

        logger.info(f"Wrote {len(self.content)} bytes to {self.path}")
        return self.ok(f"Successfully wrote {len(self.content)} bytes to {self.path}")


class ListFiles(BaseTool):
    TOOL_NAME = "list_files"
    TOOL_DESCRIPTION = """List files and directories in a given path.

Hidden entries are skipped. Directories are shown with a trailing slash, files with their size."""

    path: str = Field(
        ".", description="The directory path to list (defaults to current directory)"
    )

    async def run(self) -> ToolResult:
        display = self.path or "."
        path = Path(display).expanduser()
        if not path.exists():
            return self.fail(f"Error: Path not found: {display}")
        if not path.is_dir():
            return self.fail(f"Error: Not a directory: {display}")

        try:
            entries = []
            for child in sorted(path.iterdir(), key=lambda p: p.name):
                if child.name.startswith("."):
                    continue
                if child.is_dir():
                    entries.append(f"{child.name}/")
                else:
                    entries.append(f"{child.name} ({human_size(child.stat().st_size)})")
        except PermissionError:
            return self.fail(f"Error: Permission denied: {display}")
        except OSError as e:
            return self.fail(f"Error listing directory: {e}")

        if not entries:
            return self.ok(f"Directory is empty: {display}")
        return self.ok("\n".join(entries))


FILE_TOOLS = [ReadFile, WriteFile, ListFiles]
