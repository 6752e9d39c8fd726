"""Agent definitions: Markdown files with a YAML frontmatter header.

    ---
    name: backend-architect
    description: Designs REST APIs and service boundaries
    model: sonnet
    tools: Read, Write, Bash
    ---
    You are a backend architect...

The body becomes the agent's system prompt.
"""

import logging
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ModelTier = Literal["haiku", "sonnet", "opus"]
MODEL_TIERS = ("haiku", "sonnet", "opus")

FRONTMATTER_RE = re.compile(r"^---\s*\n([\s\S]*?)\n---\s*\n([\s\S]*)$")


class AgentMetadata(BaseModel):
    name: str
    description: str = ""
    model: ModelTier = "sonnet"
    tools: list[str] = Field(default_factory=list)
    category: str = "agents"
    type: Literal["agent", "workflow", "tool"] = "agent"


class ParsedAgent(BaseModel):
    metadata: AgentMetadata
    system_prompt: str
    file_path: str
    file_name: str


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    match = FRONTMATTER_RE.match(content)
    if not match:
        return {}, content

    yaml_content, body = match.groups()
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed agent frontmatter: %s", exc)
        return {}, body.strip()
    if not isinstance(data, dict):
        return {}, body.strip()
    return data, body.strip()


def _parse_tools(value: Any) -> list[str]:
    if isinstance(value, str):
        return [tool.strip() for tool in value.split(",") if tool.strip()]
    if isinstance(value, list):
        return [str(tool).strip() for tool in value if str(tool).strip()]
    return []


def _category_for(path: Path) -> str:
    parts = path.parts
    if "workflows" in parts:
        return "workflows"
    if "tools" in parts:
        return "tools"
    return "agents"


def parse_agent_file(content: str, file_path: str | Path) -> ParsedAgent:
    path = Path(file_path)
    metadata, body = parse_frontmatter(content)

    model = str(metadata.get("model") or "").lower()
    category = _category_for(path)
    agent_type = {"workflows": "workflow", "tools": "tool"}.get(category, "agent")

    return ParsedAgent(
        metadata=AgentMetadata(
            name=str(metadata.get("name") or path.stem),
            description=str(metadata.get("description") or ""),
            model=model if model in MODEL_TIERS else "sonnet",
            tools=_parse_tools(metadata.get("tools")),
            category=category,
            type=agent_type,
        ),
        system_prompt=body,
        file_path=str(path),
        file_name=path.name,
    )


def validate_agent_metadata(metadata: dict[str, Any]) -> list[str]:
    """Return a list of problems; empty when the metadata is usable."""
    errors = []
    if not metadata.get("name"):
        errors.append("Agent name is required")
    if not metadata.get("description"):
        errors.append("Agent description is required")
    model = metadata.get("model")
    if model and model not in MODEL_TIERS:
        errors.append(f"Invalid model tier: {model}")
    return errors
