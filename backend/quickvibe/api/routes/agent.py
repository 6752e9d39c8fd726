import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlmodel import Session

from quickvibe import crud
from quickvibe.agent import pfc
from quickvibe.agent.llm_client import LLMUsage
from quickvibe.agent.stream import stream_builder_response
from quickvibe.api.deps import CurrentUser, get_db, limit_ai
from quickvibe.core.config import settings
from quickvibe.core.db import engine

router = APIRouter()
logger = logging.getLogger(__name__)

STREAM_ENDPOINT = "/api/agent/stream"


class StreamMessage(BaseModel):
    role: str
    content: str


class AgentStreamRequest(BaseModel):
    messages: list[StreamMessage] = Field(min_length=1)
    project_type: str | None = None
    active_agents: list[str] = Field(default_factory=list)


def _usage_recorder(user_id: uuid.UUID):
    # The request session is closed by the time the stream finishes.
    def record(usage: LLMUsage, metrics: pfc.PFCMetrics) -> None:
        with Session(engine) as session:
            crud.track_token_usage(
                session=session,
                user_id=user_id,
                tokens_used=usage.total_tokens,
                endpoint=STREAM_ENDPOINT,
                saved_tokens=metrics.pfc_saved,
            )

    return record


@router.post("/stream", dependencies=[Depends(limit_ai)])
async def stream_agent(
    *,
    session: Session = Depends(get_db),
    current_user: CurrentUser,
    request_in: AgentStreamRequest,
) -> Any:
    if not settings.llm_configured:
        raise HTTPException(
            status_code=400,
            detail="LLM API key is not configured. Set ANTHROPIC_API_KEY in your environment.",
        )
    if not crud.has_tokens(session=session, user_id=current_user.id, required_tokens=1):
        raise HTTPException(status_code=403, detail="Token balance exhausted")

    logger.info(
        "Streaming %d messages for user %s (type=%s, agents=%s)",
        len(request_in.messages),
        current_user.id,
        request_in.project_type,
        request_in.active_agents,
    )
    generator = stream_builder_response(
        messages=[message.model_dump() for message in request_in.messages],
        project_type=request_in.project_type,
        agents=request_in.active_agents,
        on_complete=_usage_recorder(current_user.id),
    )
    return StreamingResponse(
        generator,
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
