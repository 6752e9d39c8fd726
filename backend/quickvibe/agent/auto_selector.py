"""Picks a team of agents for a prompt from intent, project context and the router."""

from collections import defaultdict
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from quickvibe.agent.registry import AgentRegistry
from quickvibe.agent.router import select_agent

MAX_SELECTED_AGENTS = 5
MAX_POSSIBLE_SCORE = 10
CONTEXT_WEIGHT = 1.5
ROUTER_PRIMARY_WEIGHT = 2.5
ROUTER_SUPPORTING_WEIGHT = 1.0


@dataclass(frozen=True)
class IntentPattern:
    keywords: tuple[str, ...]
    agents: tuple[str, ...]
    weight: float


INTENT_PATTERNS: dict[str, IntentPattern] = {
    "ui_creation": IntentPattern(
        ("create", "build", "make", "design", "ui", "interface", "page", "component", "button", "form", "layout"),
        ("frontend-developer", "ui-ux-designer"),
        1.5,
    ),
    "ui_styling": IntentPattern(
        ("style", "css", "color", "font", "spacing", "responsive", "mobile", "theme", "design"),
        ("frontend-developer", "css-expert"),
        1.3,
    ),
    "api_creation": IntentPattern(
        ("api", "endpoint", "route", "backend", "server", "database", "crud", "rest", "graphql"),
        ("backend-architect", "api-developer"),
        1.5,
    ),
    "database": IntentPattern(
        ("database", "schema", "table", "query", "sql", "mongodb", "prisma", "migration"),
        ("database-optimizer", "backend-architect"),
        1.4,
    ),
    "authentication": IntentPattern(
        ("auth", "login", "signup", "register", "session", "jwt", "oauth", "security", "password"),
        ("backend-security-coder", "auth-specialist"),
        1.6,
    ),
    "security_review": IntentPattern(
        ("secure", "vulnerability", "xss", "csrf", "injection", "audit", "protect"),
        ("security-auditor", "frontend-security-coder", "backend-security-coder"),
        1.5,
    ),
    "testing": IntentPattern(
        ("test", "testing", "unit test", "integration", "e2e", "coverage", "spec", "jest", "cypress"),
        ("test-automator", "tdd-orchestrator"),
        1.3,
    ),
    "optimization": IntentPattern(
        ("optimize", "performance", "speed", "fast", "slow", "lag", "bottleneck", "cache"),
        ("performance-engineer", "database-optimizer"),
        1.4,
    ),
    "debugging": IntentPattern(
        ("fix", "bug", "error", "issue", "problem", "crash", "broken", "not working", "debug"),
        ("debugger", "code-reviewer"),
        1.6,
    ),
    "feature_addition": IntentPattern(
        ("add", "implement", "create feature", "new functionality", "integrate", "include"),
        ("fullstack-developer", "feature-engineer"),
        1.2,
    ),
    "refactoring": IntentPattern(
        ("refactor", "clean", "improve", "restructure", "organize", "simplify", "readable"),
        ("code-reviewer", "refactoring-specialist"),
        1.3,
    ),
    "documentation": IntentPattern(
        ("document", "docs", "readme", "comment", "explain", "guide", "tutorial"),
        ("docs-architect", "technical-writer"),
        1.1,
    ),
    "deployment": IntentPattern(
        ("deploy", "deployment", "ci/cd", "docker", "kubernetes", "production", "hosting"),
        ("deployment-engineer", "devops-engineer"),
        1.3,
    ),
    "data_processing": IntentPattern(
        ("data", "analytics", "chart", "graph", "visualization", "report", "dashboard"),
        ("data-scientist", "frontend-developer"),
        1.2,
    ),
    "ai_integration": IntentPattern(
        ("ai", "ml", "machine learning", "llm", "gpt", "openai", "chatbot", "intelligent"),
        ("ai-engineer", "ml-engineer"),
        1.4,
    ),
}


class ConversationTurn(BaseModel):
    role: str
    content: str


class ProjectContext(BaseModel):
    project_type: str
    existing_files: list[str] = Field(default_factory=list)
    current_code: str | None = None
    conversation_history: list[ConversationTurn] = Field(default_factory=list)


@dataclass
class IntentMatch:
    intent: str
    confidence: float
    matched_keywords: list[str]


@dataclass
class AutoSelection:
    agents: list[str]
    reasoning: str
    confidence: float
    primary_agent: str | None = None
    scores: dict[str, float] = field(default_factory=dict)


def analyze_prompt_intent(prompt: str) -> list[IntentMatch]:
    lowered = prompt.lower()
    results = []
    for intent, pattern in INTENT_PATTERNS.items():
        matched = [keyword for keyword in pattern.keywords if keyword in lowered]
        if matched:
            confidence = len(matched) / len(pattern.keywords) * pattern.weight
            results.append(IntentMatch(intent, confidence, matched))
    results.sort(key=lambda match: match.confidence, reverse=True)
    return results


def analyze_project_context(context: ProjectContext) -> list[str]:
    agents: list[str] = []

    files = context.existing_files
    if files:
        if any("components/" in f or "pages/" in f or f.endswith((".tsx", ".jsx")) for f in files):
            agents.append("frontend-developer")
        if any("api/" in f or "server" in f or "backend" in f for f in files):
            agents.append("backend-architect")
        if any("prisma/" in f or "schema" in f or "migration" in f for f in files):
            agents.append("database-optimizer")
        if any("test" in f or "spec" in f for f in files):
            agents.append("test-automator")

    code = context.current_code
    if code:
        if "React" in code or "useState" in code:
            agents.append("frontend-developer")
        if "fetch" in code or "axios" in code:
            agents.append("backend-architect")
        if "auth" in code or "login" in code:
            agents.append("backend-security-coder")

    if context.conversation_history:
        recent = " ".join(turn.content.lower() for turn in context.conversation_history[-3:])
        if "error" in recent or "fix" in recent:
            agents.append("debugger")
        if "test" in recent:
            agents.append("test-automator")
        if "security" in recent:
            agents.append("security-auditor")

    return list(dict.fromkeys(agents))


def auto_select_agents(
    prompt: str, context: ProjectContext, registry: AgentRegistry | None = None
) -> AutoSelection:
    intents = analyze_prompt_intent(prompt)
    context_agents = analyze_project_context(context)
    routed = select_agent(prompt, context.project_type, registry=registry)

    scores: dict[str, float] = defaultdict(float)
    for rank, match in enumerate(intents[:3]):
        weight = 3 - rank
        for agent in INTENT_PATTERNS[match.intent].agents:
            scores[agent] += match.confidence * weight

    for agent in context_agents:
        scores[agent] += CONTEXT_WEIGHT

    if routed:
        scores[routed.primary_agent.metadata.name] += ROUTER_PRIMARY_WEIGHT
        for agent in routed.supporting_agents:
            scores[agent.metadata.name] += ROUTER_SUPPORTING_WEIGHT

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    selected = [name for name, _ in ranked[:MAX_SELECTED_AGENTS]]

    top_intents = [match.intent.replace("_", " ") for match in intents[:2]]
    reasoning_parts = [f"Detected intents: {', '.join(top_intents)}"]
    if context_agents:
        reasoning_parts.append(f"Project context suggests: {', '.join(context_agents[:2])}")
    reasoning_parts.append(f"Selected {len(selected)} specialized agents for this task")

    top_score = scores[selected[0]] if selected else 0
    return AutoSelection(
        agents=selected,
        reasoning=". ".join(reasoning_parts),
        confidence=min(1.0, top_score / MAX_POSSIBLE_SCORE),
        primary_agent=selected[0] if selected else None,
        scores=dict(scores),
    )


def explain_selection(result: AutoSelection) -> str:
    agent_list = ", ".join(name.replace("-", " ") for name in result.agents)
    return (
        f"Auto-selected agents: {agent_list}\n"
        f"{result.reasoning}\n"
        f"Confidence: {result.confidence * 100:.0f}%"
    )
