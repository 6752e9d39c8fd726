import logging
from collections import defaultdict
from functools import lru_cache
from pathlib import Path

from quickvibe.agent.parser import ParsedAgent, parse_agent_file
from quickvibe.core.config import settings

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Loads agent definitions once and indexes them by name, category and model tier."""

    def __init__(self) -> None:
        self.agents: dict[str, ParsedAgent] = {}
        self.by_category: dict[str, list[ParsedAgent]] = defaultdict(list)
        self.by_model: dict[str, list[ParsedAgent]] = defaultdict(list)
        self.initialized = False

    def load(self, agents_dir: str | Path) -> None:
        if self.initialized:
            return
        root = Path(agents_dir)
        if not root.is_dir():
            logger.warning("Agent directory %s does not exist", root)
        else:
            for path in sorted(root.rglob("*.md")):
                agent = parse_agent_file(path.read_text(encoding="utf-8"), path.relative_to(root))
                self.agents[agent.metadata.name] = agent
        self._build_indexes()
        self.initialized = True
        logger.info("Loaded %d agents from %s", len(self.agents), root)

    def _build_indexes(self) -> None:
        self.by_category.clear()
        self.by_model.clear()
        for agent in self.agents.values():
            self.by_category[agent.metadata.category].append(agent)
            self.by_model[agent.metadata.model].append(agent)

    def get(self, name: str) -> ParsedAgent | None:
        return self.agents.get(name)

    def all(self) -> list[ParsedAgent]:
        return list(self.agents.values())

    def get_by_category(self, category: str) -> list[ParsedAgent]:
        return list(self.by_category.get(category, []))

    def get_by_model(self, model: str) -> list[ParsedAgent]:
        return list(self.by_model.get(model, []))

    def search(self, query: str) -> list[ParsedAgent]:
        needle = query.lower()
        return [
            agent
            for agent in self.agents.values()
            if needle in agent.metadata.name.lower()
            or needle in agent.metadata.description.lower()
            or needle in agent.system_prompt.lower()
        ]

    def stats(self) -> dict:
        return {
            "total": len(self.agents),
            "by_category": {k: len(v) for k, v in self.by_category.items()},
            "by_model": {k: len(v) for k, v in self.by_model.items()},
        }


@lru_cache
def get_agent_registry() -> AgentRegistry:
    registry = AgentRegistry()
    registry.load(settings.AGENTS_DIR)
    return registry


def reset_agent_registry() -> None:
    get_agent_registry.cache_clear()
