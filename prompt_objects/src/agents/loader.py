# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Loading of prompt object definition files.

A definition is a markdown file that opens with a YAML front matter block:

    ---
    name: solver
    description: Solves the task it is given
    capabilities:
      - read_file
    ---
    You are a careful problem solver...

The front matter becomes an ``AgentConfig``; the rest of the file is the
behavior template.
"""

import logging

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from ..types.agent_types import AgentConfig, AgentDefinition
from ..types.errors import InvalidError, NotFoundError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

FRONT_MATTER_DELIMITER = "---"


def split_front_matter(text: str) -> tuple[Optional[str], str]:
    """Returns (front matter, body). Front matter is None when absent."""
    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        return None, text

    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == FRONT_MATTER_DELIMITER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1:]).strip()
    raise InvalidError("Unterminated front matter block")


def parse_definition(text: str, path: Optional[Path] = None, default_name: Optional[str] = None) -> AgentDefinition:
    front_matter, body = split_front_matter(text)

    try:
        data = yaml.safe_load(front_matter) if front_matter else {}
    except yaml.YAMLError as e:
        raise InvalidError(f"Invalid front matter in {path or 'definition'}: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidError(f"Front matter in {path or 'definition'} must be a mapping")

    data.setdefault("name", default_name)
    if isinstance(data.get("capabilities"), str):
        data["capabilities"] = [c.strip() for c in data["capabilities"].split(",") if c.strip()]
    if data.get("capabilities") is None:
        data["capabilities"] = []

    try:
        config = AgentConfig(**data)
    except ValidationError as e:
        raise InvalidError(f"Invalid definition {path or ''}: {e}") from e
    if not config.name:
        raise InvalidError(f"Definition {path or ''} has no name")

    return AgentDefinition(config=config, body=body, path=path)


def load_definition(path: Union[str, Path]) -> AgentDefinition:
    path = Path(path)
    if not path.is_file():
        raise NotFoundError(f"No definition file at {path}")
    return parse_definition(path.read_text(encoding="utf-8"), path=path, default_name=path.stem)


def load_definitions(directory: Union[str, Path]) -> list[AgentDefinition]:
    """Every ``*.md`` definition in ``directory``, sorted by file name.

    Files that fail to parse are logged and skipped.
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"Objects directory {directory} does not exist")
        return []

    definitions = []
    for path in sorted(directory.glob("*.md")):
        try:
            definitions.append(load_definition(path))
        except InvalidError as e:
            logger.error(f"Skipping {path.name}: {e}")
    logger.info(f"Loaded {len(definitions)} prompt object definitions from {directory}")
    return definitions


def render_definition(config: AgentConfig, body: str) -> str:
    """The inverse of ``parse_definition``: front matter, then the body."""
    data = config.model_dump(exclude_none=True)
    front_matter = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return f"{FRONT_MATTER_DELIMITER}\n{front_matter}{FRONT_MATTER_DELIMITER}\n\n{body.strip()}\n"


def save_definition(path: Union[str, Path], config: AgentConfig, body: str) -> None:
    Path(path).write_text(render_definition(config, body), encoding="utf-8")
