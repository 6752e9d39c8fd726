"""Keyword and project-type routing of a prompt to specialist agents."""

import re
from dataclasses import dataclass, field

from quickvibe.agent.parser import ParsedAgent
from quickvibe.agent.registry import AgentRegistry, get_agent_registry

MAX_SUPPORTING_AGENTS = 3

AGENT_KEYWORDS: dict[str, list[str]] = {
    "backend-architect": ["api", "backend", "microservice", "rest", "graphql", "architecture", "design system"],
    "frontend-developer": ["react", "ui", "component", "frontend", "interface", "responsive"],
    "cloud-architect": ["aws", "azure", "gcp", "cloud", "infrastructure", "scalability"],
    "security-auditor": ["security", "vulnerability", "audit", "owasp", "penetration", "threat"],
    "backend-security-coder": ["auth", "jwt", "oauth", "session", "encryption", "sql injection"],
    "frontend-security-coder": ["xss", "csrf", "sanitize", "content security policy"],
    "test-automator": ["test", "testing", "unit test", "integration test", "e2e", "coverage"],
    "tdd-orchestrator": ["tdd", "test-driven", "red-green-refactor"],
    "debugger": ["bug", "error", "debug", "issue", "fix", "troubleshoot"],
    "performance-engineer": ["performance", "optimization", "slow", "bottleneck", "profiling"],
    "database-optimizer": ["query", "index", "database performance", "sql optimization"],
    "deployment-engineer": ["deploy", "ci/cd", "pipeline", "docker", "kubernetes"],
    "devops-troubleshooter": ["production issue", "outage", "monitoring", "logs"],
    "data-scientist": ["data analysis", "statistics", "insights", "metrics"],
    "ml-engineer": ["machine learning", "model", "training", "neural network"],
    "ai-engineer": ["llm", "gpt", "rag", "prompt", "embeddings"],
    "docs-architect": ["documentation", "readme", "guide", "tutorial"],
    "api-documenter": ["api docs", "swagger", "openapi", "api reference"],
}

PROJECT_TYPE_AGENTS: dict[str, list[str]] = {
    "website": ["frontend-developer", "ui-ux-designer", "seo-meta-optimizer"],
    "mobile-app": ["mobile-developer", "ios-developer", "mobile-security-coder"],
    "game": ["unity-developer", "game-developer", "performance-engineer"],
    "api": ["backend-architect", "api-documenter", "security-auditor"],
    "dashboard": ["frontend-developer", "data-scientist", "ui-ux-designer"],
}

EXPLICIT_PATTERNS = [
    re.compile(r"use\s+([a-z-]+)"),
    re.compile(r"have\s+([a-z-]+)\s+(?:scan|review|check|analyze|build|create)"),
    re.compile(r"with\s+([a-z-]+)\s+agent"),
    re.compile(r"([a-z-]+)\s+agent"),
]


@dataclass
class AgentSelection:
    primary_agent: ParsedAgent
    supporting_agents: list[ParsedAgent] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: str = ""


def _project_type_key(project_type: str | None) -> str:
    # Accepts both "MOBILE_APP" and "mobile-app".
    return (project_type or "").strip().lower().replace("_", "-")


def select_by_explicit_mention(prompt: str, agents: list[ParsedAgent]) -> ParsedAgent | None:
    lowered = prompt.lower()
    by_name = {agent.metadata.name.lower(): agent for agent in agents}
    for pattern in EXPLICIT_PATTERNS:
        for match in pattern.finditer(lowered):
            agent = by_name.get(match.group(1))
            if agent:
                return agent
    return None


def keyword_score(prompt: str, agent_name: str) -> float:
    """Fraction of the agent's keywords present in the prompt."""
    keywords = AGENT_KEYWORDS.get(agent_name, [])
    if not keywords:
        return 0.0
    lowered = prompt.lower()
    matches = sum(1 for keyword in keywords if keyword in lowered)
    return matches / len(keywords)


def select_by_project_type(project_type: str | None, agents: list[ParsedAgent]) -> list[ParsedAgent]:
    suggested = PROJECT_TYPE_AGENTS.get(_project_type_key(project_type), [])
    return [agent for agent in agents if agent.metadata.name in suggested]


def select_by_context(
    prompt: str, project_type: str | None, registry: AgentRegistry
) -> AgentSelection | None:
    agents = registry.all()

    explicit = select_by_explicit_mention(prompt, agents)
    if explicit:
        return AgentSelection(
            primary_agent=explicit,
            confidence=1.0,
            reasoning=f'Explicit agent selection: "{explicit.metadata.name}"',
        )

    scores = [
        (agent, keyword_score(prompt, agent.metadata.name))
        for agent in agents
        if agent.metadata.type == "agent"
    ]
    scores = sorted((item for item in scores if item[1] > 0), key=lambda item: item[1], reverse=True)
    project_agents = select_by_project_type(project_type, agents) if project_type else []

    if scores:
        primary, top_score = scores[0]
        supporting = [agent for agent, _ in scores[1:3]]
        for agent in project_agents:
            names = {a.metadata.name for a in supporting}
            if agent.metadata.name != primary.metadata.name and agent.metadata.name not in names:
                supporting.append(agent)
        return AgentSelection(
            primary_agent=primary,
            supporting_agents=supporting[:MAX_SUPPORTING_AGENTS],
            confidence=top_score,
            reasoning=f"Keyword match ({top_score * 100:.0f}% confidence)",
        )

    if project_agents:
        return AgentSelection(
            primary_agent=project_agents[0],
            supporting_agents=project_agents[1:3],
            confidence=0.5,
            reasoning=f'Project type suggestion for "{project_type}"',
        )
    return None


def select_agent(
    prompt: str,
    project_type: str | None = None,
    explicit_agent_name: str | None = None,
    registry: AgentRegistry | None = None,
) -> AgentSelection | None:
    registry = registry or get_agent_registry()
    if explicit_agent_name:
        agent = registry.get(explicit_agent_name)
        if agent:
            return AgentSelection(
                primary_agent=agent,
                confidence=1.0,
                reasoning=f'User-specified agent: "{explicit_agent_name}"',
            )
    return select_by_context(prompt, project_type, registry)


def suggested_agents(project_type: str, registry: AgentRegistry | None = None) -> list[ParsedAgent]:
    registry = registry or get_agent_registry()
    return select_by_project_type(project_type, registry.all())
