# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from urllib.parse import urlparse

import httpx
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_RESPONSE_CHARS = 50_000
REQUEST_TIMEOUT = 30.0


class HttpGet(BaseTool):
    TOOL_NAME = "http_get"
    TOOL_DESCRIPTION = """Fetch content from a URL via HTTP GET request.

Only http and https URLs are supported. Redirects are reported, not followed. Very large responses are truncated."""

    url: str = Field(..., description="The URL to fetch")

    async def run(self) -> ToolResult:
        if not self.url:
            return self.fail("Error: URL is required")

        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https"):
            return self.fail("Error: Only http and https URLs are supported")
        if not parsed.netloc:
            return self.fail("Error: Invalid URL format")

        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, follow_redirects=False) as client:
                response = await client.get(self.url)
        except httpx.TimeoutException:
            return self.fail("Error: Request timed out")
        except httpx.ConnectError as e:
            return self.fail(f"Error: Could not connect - {e}")
        except httpx.HTTPError as e:
            return self.fail(f"Error fetching URL: {e}")

        if response.is_redirect:
            return self.ok(f"Redirected to: {response.headers.get('location', '')}")
        if not response.is_success:
            return self.fail(f"Error: HTTP {response.status_code} {response.reason_phrase}")

        content = response.text
        logger.info(f"Fetched {len(content)} characters from {self.url}")
        if len(content) > MAX_RESPONSE_CHARS:
            content = (
                content[:MAX_RESPONSE_CHARS]
                + f"\n\n... [truncated, response is {len(content)} bytes]"
            )
        return self.ok(content)


HTTP_TOOLS = [HttpGet]
