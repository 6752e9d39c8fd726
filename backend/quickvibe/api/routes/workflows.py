import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError
from sse_starlette.sse import EventSourceResponse

from quickvibe.agent.orchestrator import AgentOrchestrator, AgentTask, ContextStrategy
from quickvibe.agent.workflows import get_workflow, list_workflows
from quickvibe.api.deps import CurrentUser, limit_ai
from quickvibe.core.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


class WorkflowExecuteRequest(BaseModel):
    workflow_id: str | None = None
    tasks: list[AgentTask] | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    max_parallel_agents: int | None = Field(default=None, ge=1, le=10)
    context_strategy: ContextStrategy = "shared"


@router.get("/list")
def read_workflows(
    current_user: CurrentUser,
    category: str | None = None,
    tags: str | None = None,
) -> Any:
    tag_list = [tag.strip() for tag in tags.split(",") if tag.strip()] if tags else None
    workflows = list_workflows(category=category, tags=tag_list)
    return {"data": [workflow.summary() for workflow in workflows], "count": len(workflows)}


@router.post("/execute", dependencies=[Depends(limit_ai)])
async def execute_workflow(request_in: WorkflowExecuteRequest, current_user: CurrentUser) -> Any:
    if not request_in.workflow_id and not request_in.tasks:
        raise HTTPException(status_code=400, detail="Either workflow_id or tasks must be provided")
    if not settings.llm_configured:
        raise HTTPException(status_code=400, detail="LLM API key is not configured")

    orchestrator = AgentOrchestrator(
        max_parallel_agents=request_in.max_parallel_agents,
        context_strategy=request_in.context_strategy,
    )
    if request_in.workflow_id:
        workflow = get_workflow(request_in.workflow_id)
        if workflow is None:
            raise HTTPException(status_code=404, detail=f"Workflow {request_in.workflow_id} not found")
        try:
            orchestrator.add_tasks(workflow.tasks_for(request_in.params))
        except ValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid parameters for workflow {workflow.id}: {exc.error_count()} error(s)",
            )
        workflow_id, workflow_name = workflow.id, workflow.name
    else:
        orchestrator.add_tasks(request_in.tasks or [])
        workflow_id, workflow_name = "custom", "Custom Workflow"

    logger.info(
        "User %s started workflow %s with %d tasks",
        current_user.id,
        workflow_id,
        len(orchestrator.tasks),
    )

    async def event_generator():
        async for event in orchestrator.run(workflow_id=workflow_id, workflow_name=workflow_name):
            yield json.dumps(event)

    return EventSourceResponse(event_generator())
