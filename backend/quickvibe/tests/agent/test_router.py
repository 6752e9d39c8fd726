from quickvibe.agent.auto_selector import (
    ConversationTurn,
    ProjectContext,
    analyze_project_context,
    analyze_prompt_intent,
    auto_select_agents,
    explain_selection,
)
from quickvibe.agent.router import keyword_score, select_agent


def test_explicit_mention_wins(registry):
    selection = select_agent("please use security-auditor on this repo", registry=registry)

    assert selection.primary_agent.metadata.name == "security-auditor"
    assert selection.confidence == 1.0
    assert selection.supporting_agents == []


def test_user_specified_agent(registry):
    selection = select_agent("anything", explicit_agent_name="test-automator", registry=registry)
    assert selection.primary_agent.metadata.name == "test-automator"
    assert selection.reasoning == 'User-specified agent: "test-automator"'


def test_keyword_match(registry):
    selection = select_agent("make a react ui component", registry=registry)

    assert selection.primary_agent.metadata.name == "frontend-developer"
    assert selection.confidence == 0.5


def test_project_type_fallback_accepts_upper_snake_case(registry):
    selection = select_agent("hello there", project_type="DASHBOARD", registry=registry)

    assert selection.primary_agent.metadata.name == "frontend-developer"
    assert [a.metadata.name for a in selection.supporting_agents] == ["ui-ux-designer"]
    assert selection.confidence == 0.5


def test_no_match_returns_none(registry):
    assert select_agent("hello there", registry=registry) is None


def test_keyword_score_unknown_agent():
    assert keyword_score("api backend", "nobody") == 0.0


def test_prompt_intents_are_ranked():
    intents = analyze_prompt_intent("add a login form with jwt auth")
    assert intents[0].intent == "authentication"
    assert {"auth", "login", "jwt"} <= set(intents[0].matched_keywords)


def test_project_context_signals():
    context = ProjectContext(
        project_type="WEB_APP",
        existing_files=["components/Nav.tsx", "prisma/schema.prisma"],
        current_code="const [x, setX] = useState(0)",
        conversation_history=[ConversationTurn(role="user", content="please fix this error")],
    )
    assert analyze_project_context(context) == ["frontend-developer", "database-optimizer", "debugger"]


def test_auto_select_combines_signals(registry):
    result = auto_select_agents(
        "add a login form with jwt auth", ProjectContext(project_type="WEB_APP"), registry=registry
    )

    assert result.primary_agent == "backend-security-coder"
    assert result.agents[0] == "backend-security-coder"
    assert len(result.agents) <= 5
    assert 0 < result.confidence <= 1
    assert result.reasoning.startswith("Detected intents: authentication")

    explanation = explain_selection(result)
    assert "backend security coder" in explanation
    assert "Confidence:" in explanation
