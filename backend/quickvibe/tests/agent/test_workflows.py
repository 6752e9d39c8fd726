import pytest
from pydantic import ValidationError

from quickvibe.agent.orchestrator import plan_waves
from quickvibe.agent.registry import get_agent_registry, reset_agent_registry
from quickvibe.agent.workflows import WORKFLOWS, get_workflow, list_workflows


def test_six_templates_are_registered():
    assert set(WORKFLOWS) == {
        "fullstack-dev",
        "security-audit",
        "testing-suite",
        "performance-optimization",
        "code-review",
        "devops-setup",
    }
    assert get_workflow("nope") is None


@pytest.mark.parametrize("workflow_id", sorted(WORKFLOWS))
def test_templates_plan_without_cycles(workflow_id):
    tasks = get_workflow(workflow_id).build_tasks({})
    waves = plan_waves(tasks)
    assert sum(len(wave) for wave in waves) == len(tasks) == 6


def test_template_agents_exist_in_bundled_definitions():
    reset_agent_registry()
    registry = get_agent_registry()
    for workflow in WORKFLOWS.values():
        for task in workflow.build_tasks({}):
            assert registry.get(task.agent_name), f"{workflow.id}: {task.agent_name}"


def test_fullstack_waves_and_params():
    tasks = get_workflow("fullstack-dev").build_tasks(
        {"projectType": "todo app", "features": ["auth", "sharing"], "techStack": {"db": "postgres"}}
    )

    assert plan_waves(tasks) == [
        ["backend-architecture"],
        ["database-schema", "frontend-architecture"],
        ["api-implementation", "ui-implementation"],
        ["integration"],
    ]
    first = tasks[0]
    assert "todo app" in first.prompt
    assert "auth, sharing" in first.prompt
    assert '"db": "postgres"' in first.prompt
    assert first.max_tokens == 16000


def test_security_report_waits_for_all_audits():
    tasks = {task.id: task for task in get_workflow("security-audit").build_tasks({})}
    assert set(tasks["security-report"].dependencies) == {
        "frontend-security",
        "backend-security",
        "dependency-security",
        "infrastructure-security",
    }


def test_list_workflows_filters():
    assert [w.id for w in list_workflows(category="security")] == ["security-audit"]
    assert {w.id for w in list_workflows(tags=["monitoring", "owasp"])} == {"devops-setup", "security-audit"}
    assert len(list_workflows()) == 6
    assert get_workflow("code-review").summary()["complexity"] == "moderate"


def test_tasks_for_validates_params():
    workflow = get_workflow("testing-suite")

    tasks = workflow.tasks_for({"framework": "pytest", "unknown": "ignored"})
    assert "Framework: pytest" in tasks[0].prompt
    assert "Target coverage: 80%" in tasks[0].prompt

    with pytest.raises(ValidationError):
        get_workflow("code-review").tasks_for({"changedFiles": "app.py"})
    with pytest.raises(ValidationError):
        get_workflow("fullstack-dev").tasks_for({"features": [1, 2]})
