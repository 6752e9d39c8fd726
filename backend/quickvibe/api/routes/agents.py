from collections import defaultdict
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from quickvibe.agent.auto_selector import (
    ConversationTurn,
    ProjectContext,
    auto_select_agents,
    explain_selection,
)
from quickvibe.agent.registry import get_agent_registry
from quickvibe.api.deps import CurrentUser

router = APIRouter()


class AutoSelectRequest(BaseModel):
    prompt: str = Field(min_length=1)
    project_type: str = "WEB_APP"
    existing_files: list[str] = Field(default_factory=list)
    current_code: str | None = None
    conversation_history: list[ConversationTurn] = Field(default_factory=list)


@router.get("/list")
def list_agents(current_user: CurrentUser) -> Any:
    registry = get_agent_registry()
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for agent in registry.all():
        grouped[agent.metadata.category].append(
            {
                "name": agent.metadata.name,
                "description": agent.metadata.description,
                "model": agent.metadata.model,
                "type": agent.metadata.type,
                "tools": agent.metadata.tools,
            }
        )
    return {"stats": registry.stats(), "agents": dict(grouped)}


@router.post("/auto-select")
def auto_select(request_in: AutoSelectRequest, current_user: CurrentUser) -> Any:
    context = ProjectContext(
        project_type=request_in.project_type,
        existing_files=request_in.existing_files,
        current_code=request_in.current_code,
        conversation_history=request_in.conversation_history,
    )
    selection = auto_select_agents(request_in.prompt, context)
    return {
        "agents": selection.agents,
        "primary_agent": selection.primary_agent,
        "confidence": selection.confidence,
        "reasoning": selection.reasoning,
        "explanation": explain_selection(selection),
    }
