import json
from unittest.mock import patch

import pytest
from sqlmodel import select

from quickvibe.agent.llm_client import LLMUsage
from quickvibe.core.config import settings
from quickvibe.models import TokenUsage, User

API = settings.API_V1_STR


class FakeLLM:
    def __init__(self, model_name=None, **kwargs):
        self.model_name = model_name

    async def stream_text(self, system_prompt, messages, *, max_tokens=None):
        yield "Here is your page\n```html\n<p>hi</p>\n```\n"
        yield LLMUsage(input_tokens=800, output_tokens=200)

    async def complete(self, system_prompt, messages, *, max_tokens=None, temperature=None):
        return "done", LLMUsage(input_tokens=3, output_tokens=2)


@pytest.fixture
def llm_configured():
    with patch.object(settings, "ANTHROPIC_API_KEY", "sk-test"):
        yield


def _sse_events(text: str) -> list[dict]:
    return [json.loads(line[len("data:"):].strip()) for line in text.splitlines() if line.startswith("data:")]


def test_stream_requires_api_key(client, user_headers):
    r = client.post(
        f"{API}/agent/stream", json={"messages": [{"role": "user", "content": "hi"}]}, headers=user_headers
    )
    assert r.status_code == 400


def test_stream_rejects_empty_messages(client, user_headers, llm_configured):
    r = client.post(f"{API}/agent/stream", json={"messages": []}, headers=user_headers)
    assert r.status_code == 422


def test_stream_records_usage(client, db, db_engine, user, user_headers, llm_configured):
    with patch("quickvibe.agent.stream.LLMClient", FakeLLM), patch(
        "quickvibe.api.routes.agent.engine", db_engine
    ):
        r = client.post(
            f"{API}/agent/stream",
            json={
                "messages": [{"role": "user", "content": "make a page"}],
                "project_type": "WEBSITE",
                "active_agents": ["frontend-developer"],
            },
            headers=user_headers,
        )

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert "__PROGRESS__" in r.text
    assert "__CHANGES__" in r.text
    assert '"tokensUsed": 1000' in r.text

    db.expire_all()
    usage = db.exec(select(TokenUsage)).all()
    assert [(u.tokens_used, u.endpoint) for u in usage] == [(1000, "/api/agent/stream")]
    assert db.get(User, user.id).token_balance == 9000


def test_agents_list(client, user_headers):
    r = client.get(f"{API}/agents/list", headers=user_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["stats"]["total"] >= 15
    names = {agent["name"] for agent in body["agents"]["agents"]}
    assert {"backend-architect", "frontend-developer", "security-auditor"} <= names


def test_auto_select(client, user_headers):
    r = client.post(
        f"{API}/agents/auto-select",
        json={"prompt": "add a login form with jwt auth", "project_type": "WEB_APP"},
        headers=user_headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["primary_agent"] == "backend-security-coder"
    assert body["explanation"].startswith("Auto-selected agents:")


def test_workflow_list(client, user_headers):
    r = client.get(f"{API}/workflows/list", headers=user_headers)
    assert r.json()["count"] == 6
    r = client.get(f"{API}/workflows/list", params={"category": "devops"}, headers=user_headers)
    assert [w["id"] for w in r.json()["data"]] == ["devops-setup"]


def test_workflow_execute_validation(client, user_headers, llm_configured):
    assert client.post(f"{API}/workflows/execute", json={}, headers=user_headers).status_code == 400
    r = client.post(f"{API}/workflows/execute", json={"workflow_id": "nope"}, headers=user_headers)
    assert r.status_code == 404

    for params in ({"features": [1, 2]}, {"features": "auth"}, {"coverage": 150}):
        r = client.post(
            f"{API}/workflows/execute",
            json={"workflow_id": "fullstack-dev", "params": params},
            headers=user_headers,
        )
        assert r.status_code == 400, params
        assert r.json()["detail"].startswith("Invalid parameters for workflow fullstack-dev")


def test_workflow_execute_streams_events(client, user_headers, llm_configured):
    tasks = [
        {"id": "plan", "agent_name": "backend-architect", "prompt": "plan it"},
        {"id": "build", "agent_name": "frontend-developer", "prompt": "build it", "dependencies": ["plan"]},
    ]
    with patch("quickvibe.agent.orchestrator.LLMClient", FakeLLM):
        r = client.post(f"{API}/workflows/execute", json={"tasks": tasks}, headers=user_headers)

    assert r.status_code == 200
    events = _sse_events(r.text)
    types = [event["type"] for event in events]
    assert types[0] == "workflow:start"
    assert types.count("task:complete") == 2
    assert types[-1] == "workflow:results"
    assert events[-2]["summary"]["totalTokens"] == 10


def test_stream_blocked_when_balance_exhausted(client, db, user, user_headers, llm_configured):
    user.token_balance = 0
    db.add(user)
    db.commit()

    with patch("quickvibe.agent.stream.LLMClient", FakeLLM):
        r = client.post(
            f"{API}/agent/stream", json={"messages": [{"role": "user", "content": "hi"}]}, headers=user_headers
        )

    assert r.status_code == 403
    assert r.json()["detail"] == "Token balance exhausted"
