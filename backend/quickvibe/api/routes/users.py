from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from quickvibe import crud
from quickvibe.api.deps import CurrentUser, SessionDep, limit_auth
from quickvibe.models import TokenStats, UserCreate, UserPublic, UserRegister

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/signup", response_model=UserPublic, dependencies=[Depends(limit_auth)])
def register_user(session: SessionDep, user_in: UserRegister) -> Any:
    """
    Create new user without the need to be logged in.
    """
    user = crud.get_user_by_email(session=session, email=user_in.email)
    if user:
        raise HTTPException(
            status_code=409,
            detail="The user with this email already exists in the system",
        )
    user_create = UserCreate.model_validate(user_in)
    return crud.create_user(session=session, user_create=user_create)


@router.get("/me", response_model=UserPublic)
def read_user_me(current_user: CurrentUser) -> Any:
    return current_user


@router.get("/me/usage", response_model=TokenStats)
def read_user_usage(session: SessionDep, current_user: CurrentUser) -> Any:
    return crud.get_user_token_stats(session=session, user_id=current_user.id)
