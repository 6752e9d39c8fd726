import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from quickvibe import crud
from quickvibe.api.deps import CurrentUser, get_db
from quickvibe.models import (
    CollaborationInvite,
    InviteCreate,
    InvitePublic,
    InviteResponse,
    MemberPublic,
    Message,
)

router = APIRouter()


def _invite_public(invite: CollaborationInvite) -> InvitePublic:
    return InvitePublic.model_validate(
        invite, update={"project_name": invite.project.name if invite.project else None}
    )


@router.post("/invite", response_model=InvitePublic)
def invite_collaborator(
    *,
    session: Session = Depends(get_db),
    current_user: CurrentUser,
    invite_in: InviteCreate,
) -> Any:
    try:
        invite = crud.create_invite(session=session, invite_in=invite_in, sender_id=current_user.id)
    except crud.NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except crud.NotAllowedError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except crud.ConflictError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _invite_public(invite)


@router.get("/invites", response_model=list[InvitePublic])
def read_invites(
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    invites = crud.list_pending_invites(session=session, user=current_user)
    return [_invite_public(invite) for invite in invites]


@router.post("/respond", response_model=InvitePublic)
def respond_to_invite(
    *,
    session: Session = Depends(get_db),
    current_user: CurrentUser,
    response_in: InviteResponse,
) -> Any:
    try:
        invite = crud.respond_to_invite(
            session=session,
            invite_id=response_in.invite_id,
            user=current_user,
            action=response_in.action,
        )
    except crud.NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except crud.NotAllowedError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except crud.ConflictError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _invite_public(invite)


@router.get("/members", response_model=list[MemberPublic])
def read_members(
    project_id: uuid.UUID,
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    try:
        project = crud.get_project(session=session, project_id=project_id)
    except crud.NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    if not crud.can_view_project(session=session, project=project, user_id=current_user.id):
        raise HTTPException(status_code=403, detail="Not enough permissions")
    return crud.list_members(session=session, project_id=project.id)


@router.delete("/members", response_model=Message)
def delete_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    session: Session = Depends(get_db),
    current_user: CurrentUser = None,
) -> Any:
    try:
        crud.remove_member(
            session=session, project_id=project_id, user_id=user_id, requester_id=current_user.id
        )
    except crud.NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except crud.NotAllowedError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    return Message(message="Member removed successfully")
