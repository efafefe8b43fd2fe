# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Configuration settings for the prompt object runtime."""

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Runtime settings, loaded from environment variables or a .env file."""

    LOG_LEVEL: str = "INFO"

    # Storage
    DB_PATH: str = ".prompt_objects/sessions.db"
    STORE_BUSY_TIMEOUT: float = 5.0  # seconds to wait on a locked database
    THREAD_TREE_MAX_DEPTH: int = 10

    # Agent definitions
    OBJECTS_DIR: str = "objects"

    # LLM
    MODEL: str = "gpt-4.1"
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None

    # Runtime
    MAX_TURNS: int = 25
    INTERACTIVE: bool = False
    CONCURRENT_TOOLS: bool = False  # opt-in bounded concurrency per environment
    MAX_CONCURRENT_TOOLS: int = 5
    TOOL_CALL_TIMEOUT: float | None = None

    class Config:
        env_prefix = "PROMPT_OBJECTS_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
