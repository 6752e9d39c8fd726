import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from quickvibe.agent.llm_client import LLMClient
from quickvibe.agent.parser import ParsedAgent
from quickvibe.agent.registry import AgentRegistry, get_agent_registry
from quickvibe.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 16000
DEPENDENCY_CONTEXT_CHARS = 2000
SHARED_CONTEXT_CHARS = 500
SHARED_CONTEXT_TASKS = 5
SHARED_CONTEXT_TOKEN_BUDGET = 5000
OUTPUT_PREVIEW_CHARS = 500

ContextStrategy = Literal["shared", "isolated", "hierarchical"]


class OrchestrationError(Exception):
    pass


class AgentTask(BaseModel):
    id: str
    agent_name: str
    description: str = ""
    prompt: str
    dependencies: list[str] = Field(default_factory=list)
    context: dict[str, Any] | None = None
    priority: int = Field(default=5, ge=1, le=10)
    max_tokens: int | None = None
    model: str | None = None


class AgentResult(BaseModel):
    task_id: str
    agent_name: str
    success: bool
    output: str = ""
    tokens_used: int = 0
    duration: float = 0
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def prune_context(text: str, max_chars: int) -> str:
    """Keep the head and tail of ``text`` when it is longer than ``max_chars``."""
    if len(text) <= max_chars:
        return text
    half = max_chars // 2 - 50
    return f"{text[:half]}\n\n... [content pruned] ...\n\n{text[-half:]}"


def validate_no_cycles(graph: dict[str, list[str]]) -> None:
    visited: set[str] = set()
    stack: set[str] = set()

    def visit(node: str) -> bool:
        visited.add(node)
        stack.add(node)
        for dep in graph.get(node, []):
            if dep not in visited:
                if visit(dep):
                    return True
            elif dep in stack:
                return True
        stack.discard(node)
        return False

    for node in graph:
        if node not in visited and visit(node):
            raise OrchestrationError("Circular dependency detected in task graph")


def plan_waves(tasks: list[AgentTask]) -> list[list[str]]:
    """Group task ids into waves whose dependencies are all satisfied by earlier waves."""
    graph = {task.id: list(task.dependencies) for task in tasks}
    validate_no_cycles(graph)

    remaining = [task.id for task in tasks]
    completed: set[str] = set()
    waves = []
    while remaining:
        ready = [task_id for task_id in remaining if all(dep in completed for dep in graph[task_id])]
        if not ready:
            raise OrchestrationError("Deadlock detected: no tasks ready to execute but tasks remain")
        waves.append(ready)
        completed.update(ready)
        remaining = [task_id for task_id in remaining if task_id not in completed]
    return waves


class AgentOrchestrator:
    """Runs agent tasks in dependency waves and yields progress events."""

    def __init__(
        self,
        *,
        max_parallel_agents: int | None = None,
        context_strategy: ContextStrategy = "shared",
        registry: AgentRegistry | None = None,
        llm_factory: Callable[[str], LLMClient] | None = None,
    ):
        self.max_parallel_agents = max(1, max_parallel_agents or settings.MAX_PARALLEL_AGENTS)
        self.context_strategy = context_strategy
        self.registry = registry or get_agent_registry()
        self.llm_factory = llm_factory or (lambda model: LLMClient(model_name=model))
        self.tasks: dict[str, AgentTask] = {}
        self.completed: dict[str, AgentResult] = {}
        self.shared_context: dict[str, str] = {}

    def add_tasks(self, tasks: list[AgentTask]) -> None:
        for task in tasks:
            self.tasks[task.id] = task

    def model_for(self, agent: ParsedAgent, task: AgentTask) -> str:
        return task.model or settings.model_for_tier(agent.metadata.model)

    def build_task_context(self, task: AgentTask) -> str:
        parts = []
        if task.context:
            parts.append(f"### Task Context\n{json.dumps(task.context, indent=2)}")

        if task.dependencies:
            parts.append("### Dependency Results")
            for dep_id in task.dependencies:
                result = self.completed.get(dep_id)
                if result and result.success:
                    parts.append(f"\n**Task {dep_id} ({result.agent_name}):**")
                    parts.append(prune_context(result.output, DEPENDENCY_CONTEXT_CHARS))

        if self.context_strategy == "shared":
            shared = self._relevant_shared_context(task)
            if shared:
                parts.append(f"\n### Shared Context\n{shared}")
        return "\n\n".join(parts)

    def _relevant_shared_context(self, task: AgentTask) -> str:
        parts = []
        budget = 0.0
        recent = [item for item in list(self.completed.items())[-SHARED_CONTEXT_TASKS:] if item[0] != task.id]
        for task_id, result in recent:
            output = self.shared_context.get(task_id)
            if output and budget < SHARED_CONTEXT_TOKEN_BUDGET:
                summary = prune_context(output, SHARED_CONTEXT_CHARS)
                parts.append(f"**{result.agent_name}:** {summary}")
                budget += len(summary) / 4
        return "\n\n".join(parts)

    def build_system_prompt(self, agent: ParsedAgent, task: AgentTask, context: str) -> str:
        parts = [
            agent.system_prompt,
            "\n\n## ORCHESTRATION CONTEXT\n",
            f"Task ID: {task.id}",
            f"Task Description: {task.description}",
        ]
        if context:
            parts.append(f"\n{context}")
        return "\n".join(parts)

    async def _run_task(self, task: AgentTask, agent: ParsedAgent, model: str) -> AgentResult:
        started = time.monotonic()
        try:
            system_prompt = self.build_system_prompt(agent, task, self.build_task_context(task))
            messages = [{"role": "user", "content": task.prompt}]
            if task.context and task.context.get("previousOutput"):
                messages.insert(0, {"role": "assistant", "content": str(task.context["previousOutput"])})

            llm = self.llm_factory(model)
            output, usage = await llm.complete(
                system_prompt, messages, max_tokens=task.max_tokens or DEFAULT_MAX_TOKENS
            )
            result = AgentResult(
                task_id=task.id,
                agent_name=task.agent_name,
                success=True,
                output=output,
                tokens_used=usage.total_tokens,
                duration=round(time.monotonic() - started, 3),
                metadata={
                    "model": model,
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                },
            )
            if self.context_strategy == "shared":
                self.shared_context[task.id] = output
            return result
        except Exception as exc:
            logger.warning("Task %s (%s) failed: %s", task.id, task.agent_name, exc)
            return AgentResult(
                task_id=task.id,
                agent_name=task.agent_name,
                success=False,
                duration=round(time.monotonic() - started, 3),
                error=str(exc),
            )

    async def _run_batch(self, batch: list[str]) -> AsyncIterator[dict[str, Any]]:
        pending = []
        for task_id in batch:
            task = self.tasks[task_id]
            yield {
                "type": "task:start",
                "taskId": task.id,
                "agentName": task.agent_name,
                "description": task.description,
                "timestamp": _now(),
            }
            agent = self.registry.get(task.agent_name)
            if agent is None:
                pending.append(self._missing_agent(task))
                continue
            model = self.model_for(agent, task)
            yield {
                "type": "agent:invoke",
                "taskId": task.id,
                "agentName": task.agent_name,
                "model": model,
                "timestamp": _now(),
            }
            pending.append(self._run_task(task, agent, model))

        for result in await asyncio.gather(*pending):
            self.completed[result.task_id] = result
            if result.success:
                yield {
                    "type": "task:complete",
                    "taskId": result.task_id,
                    "agentName": result.agent_name,
                    "success": True,
                    "tokensUsed": result.tokens_used,
                    "duration": result.duration,
                    "outputPreview": result.output[:OUTPUT_PREVIEW_CHARS],
                    "timestamp": _now(),
                }
            else:
                yield {
                    "type": "task:error",
                    "taskId": result.task_id,
                    "agentName": result.agent_name,
                    "error": result.error,
                    "timestamp": _now(),
                }

    async def _missing_agent(self, task: AgentTask) -> AgentResult:
        return AgentResult(
            task_id=task.id,
            agent_name=task.agent_name,
            success=False,
            error=f'Agent "{task.agent_name}" not found',
        )

    async def run(
        self, *, workflow_id: str = "custom", workflow_name: str = "Custom Workflow"
    ) -> AsyncIterator[dict[str, Any]]:
        yield {
            "type": "workflow:start",
            "workflowId": workflow_id,
            "workflowName": workflow_name,
            "taskCount": len(self.tasks),
            "timestamp": _now(),
        }
        try:
            waves = plan_waves(list(self.tasks.values()))
            for wave in waves:
                yield {"type": "wave:start", "taskIds": wave, "timestamp": _now()}
                for i in range(0, len(wave), self.max_parallel_agents):
                    async for event in self._run_batch(wave[i : i + self.max_parallel_agents]):
                        yield event
                yield {"type": "wave:complete", "taskIds": wave, "timestamp": _now()}
        except OrchestrationError as exc:
            logger.error("Workflow %s aborted: %s", workflow_id, exc)
            yield {"type": "workflow:error", "error": str(exc), "timestamp": _now()}
            return

        results = list(self.completed.values())
        successful = [r for r in results if r.success]
        total_tokens = sum(r.tokens_used for r in results)
        total_duration = sum(r.duration for r in results)
        yield {
            "type": "workflow:complete",
            "summary": {
                "totalTasks": len(results),
                "successfulTasks": len(successful),
                "failedTasks": len(results) - len(successful),
                "totalTokens": total_tokens,
                "totalDuration": total_duration,
                "avgDuration": total_duration / len(results) if results else 0,
            },
            "timestamp": _now(),
        }
        yield {
            "type": "workflow:results",
            "results": [r.model_dump() for r in results],
            "timestamp": _now(),
        }

    def status(self) -> dict[str, int]:
        return {
            "queued": len(self.tasks),
            "completed": len(self.completed),
            "shared_context_size": len(self.shared_context),
        }
