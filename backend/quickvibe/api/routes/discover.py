from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from quickvibe import crud
from quickvibe.api.deps import get_db, limit_api
from quickvibe.models import DiscoverPage

router = APIRouter()


@router.get("/", response_model=DiscoverPage, dependencies=[Depends(limit_api)])
def discover(
    session: Session = Depends(get_db),
    category: str | None = None,
    search: str | None = Query(default=None, max_length=100),
    sort: Literal["recent", "popular", "trending", "forks"] = "recent",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=50),
) -> Any:
    """Public projects, newest first unless another sort is requested."""
    return crud.discover_projects(
        session=session, category=category, search=search, sort=sort, page=page, limit=limit
    )
