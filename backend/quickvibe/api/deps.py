import uuid
from collections.abc import Generator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlmodel import Session

from quickvibe.core import security
from quickvibe.core.config import settings
from quickvibe.core.db import engine
from quickvibe.core.rate_limit import (
    RateLimiter,
    ai_limiter,
    api_limiter,
    auth_limiter,
    enforce_rate_limit,
    save_limiter,
)
from quickvibe.models import TokenPayload, User

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/access-token"
)
optional_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/access-token", auto_error=False
)


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]
TokenDep = Annotated[str, Depends(reusable_oauth2)]


def _user_from_token(session: Session, token: str) -> User:
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[security.ALGORITHM]
        )
        token_data = TokenPayload(**payload)
        user_id = uuid.UUID(token_data.sub) if token_data.sub else None
    except (InvalidTokenError, ValidationError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = session.get(User, user_id) if user_id else None
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return user


def get_current_user(session: SessionDep, token: TokenDep) -> User:
    return _user_from_token(session, token)


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_optional_user(
    session: SessionDep, token: Annotated[str | None, Depends(optional_oauth2)]
) -> User | None:
    """Resolve the caller when a bearer token is sent; anonymous otherwise."""
    if not token:
        return None
    return _user_from_token(session, token)


OptionalUser = Annotated[User | None, Depends(get_optional_user)]


def _limit_by_user(limiter: RateLimiter):
    def dependency(request: Request, current_user: CurrentUser) -> None:
        enforce_rate_limit(request, limiter, current_user.id)

    return dependency


def _limit_by_ip(limiter: RateLimiter):
    def dependency(request: Request) -> None:
        enforce_rate_limit(request, limiter)

    return dependency


limit_api = _limit_by_ip(api_limiter)
limit_ai = _limit_by_user(ai_limiter)
limit_save = _limit_by_user(save_limiter)
limit_auth = _limit_by_ip(auth_limiter)
