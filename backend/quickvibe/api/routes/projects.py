import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from quickvibe import crud
from quickvibe.agent.title_agent import TitleAgent, TitleInput
from quickvibe.api.deps import CurrentUser, OptionalUser, get_db, limit_save
from quickvibe.core.config import settings
from quickvibe.models import (
    ChatMessagesPage,
    FileOperationsRequest,
    ForkRequest,
    LikeRequest,
    LikeResult,
    Message,
    Project,
    ProjectDetail,
    ProjectFilePublic,
    ProjectPublic,
    ProjectSave,
    ProjectSaved,
    ProjectsPublic,
    TitleRequest,
    TitleResult,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _viewable_project(session: Session, project_id: uuid.UUID, user_id: uuid.UUID | None) -> Project:
    try:
        project = crud.get_project(session=session, project_id=project_id)
    except crud.NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    if not crud.can_view_project(session=session, project=project, user_id=user_id):
        raise HTTPException(status_code=403, detail="Not enough permissions")
    return project


def _project_detail(session: Session, project: Project) -> ProjectDetail:
    return ProjectDetail.model_validate(
        project,
        update={"messages": crud.list_project_messages(session=session, project_id=project.id)},
    )


@router.post("/save", response_model=ProjectSaved, dependencies=[Depends(limit_save)])
def save_project(
    *,
    session: Session = Depends(get_db),
    current_user: CurrentUser,
    project_in: ProjectSave,
) -> Any:
    try:
        return crud.save_project(session=session, project_in=project_in, owner_id=current_user.id)
    except crud.NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")


@router.get("/load", response_model=ProjectDetail)
def load_project(
    project_id: uuid.UUID,
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    project = _viewable_project(session, project_id, current_user.id)
    return _project_detail(session, project)


@router.get("/", response_model=ProjectsPublic)
def read_projects(
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    projects = crud.list_user_projects(session=session, owner_id=current_user.id)
    return ProjectsPublic(data=projects, count=len(projects))


@router.post("/fork", response_model=ProjectPublic)
def fork_project(
    *,
    session: Session = Depends(get_db),
    current_user: CurrentUser,
    fork_in: ForkRequest,
) -> Any:
    try:
        return crud.fork_project(
            session=session,
            project_id=fork_in.project_id,
            user_id=current_user.id,
            new_name=fork_in.new_name,
        )
    except crud.NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")


@router.post("/like", response_model=LikeResult)
def like_project(
    *,
    session: Session = Depends(get_db),
    current_user: CurrentUser,
    like_in: LikeRequest,
) -> Any:
    project = _viewable_project(session, like_in.project_id, current_user.id)
    return LikeResult(likes=crud.like_project(session=session, project_id=project.id))


@router.post("/generate-title", response_model=TitleResult)
async def generate_title(title_in: TitleRequest, current_user: CurrentUser) -> Any:
    if not settings.llm_configured:
        raise HTTPException(status_code=400, detail="LLM API key is not configured")
    agent = TitleAgent()
    try:
        title = await agent.run(TitleInput(prompt=title_in.prompt, project_type=title_in.project_type))
    except Exception as exc:
        logger.error("Title generation failed for user %s: %s", current_user.id, exc)
        raise HTTPException(status_code=500, detail="Failed to generate title")
    return TitleResult(title=title)


@router.get("/{id}", response_model=ProjectDetail)
def read_project(
    id: uuid.UUID,
    session: Session = Depends(get_db),
    current_user: OptionalUser = None,
) -> Any:
    project = _viewable_project(session, id, current_user.id if current_user else None)
    return _project_detail(session, project)


@router.delete("/{id}", response_model=Message)
def delete_project(
    id: uuid.UUID,
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    try:
        crud.delete_project(session=session, project_id=id, user_id=current_user.id)
    except crud.NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except crud.NotAllowedError:
        raise HTTPException(status_code=403, detail="Not enough permissions")
    return Message(message="Project deleted successfully")


@router.get("/{id}/messages", response_model=ChatMessagesPage)
def read_project_messages(
    id: uuid.UUID,
    cursor: int | None = None,
    limit: int = Query(default=50, ge=1, le=100),
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    project = _viewable_project(session, id, current_user.id)
    messages, next_cursor, has_more = crud.get_messages_paginated(
        session=session, project_id=project.id, cursor=cursor, limit=limit
    )
    return ChatMessagesPage(data=messages, next_cursor=next_cursor, has_more=has_more)


@router.get("/{id}/files", response_model=list[ProjectFilePublic])
def read_project_files(
    id: uuid.UUID,
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    project = _viewable_project(session, id, current_user.id)
    return crud.list_project_files(session=session, project_id=project.id)


@router.post("/{id}/files", response_model=list[ProjectFilePublic])
def apply_project_file_operations(
    id: uuid.UUID,
    operations_in: FileOperationsRequest,
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    project = _viewable_project(session, id, current_user.id)
    if not crud.can_edit_project(session=session, project=project, user_id=current_user.id):
        raise HTTPException(status_code=403, detail="Not enough permissions")
    try:
        return crud.apply_file_operations(
            session=session, project_id=project.id, operations=operations_in.operations
        )
    except crud.FileOperationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
