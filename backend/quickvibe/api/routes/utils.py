import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from quickvibe.agent.registry import get_agent_registry
from quickvibe.api.deps import get_db
from quickvibe.core.config import settings
from quickvibe.core.db import ping
from quickvibe.core.rate_limit import storage_status

router = APIRouter(prefix="/utils", tags=["utils"])
logger = logging.getLogger(__name__)


@router.get("/health-check/")
async def health_check() -> bool:
    return True


@router.get("/health")
def health(session: Session = Depends(get_db)) -> Any:
    checks: dict[str, Any] = {}
    try:
        ping(session)
        checks["database"] = {"status": "healthy"}
    except SQLAlchemyError as exc:
        logger.error("Database health check failed: %s", exc)
        checks["database"] = {"status": "unhealthy", "error": str(exc)}

    checks["rate_limit_storage"] = storage_status()
    checks["llm"] = {"status": "configured" if settings.llm_configured else "not_configured"}
    checks["agents"] = {"status": "loaded", "count": get_agent_registry().stats()["total"]}

    degraded = checks["database"]["status"] != "healthy" or checks["rate_limit_storage"]["status"] == "unhealthy"
    body = {"status": "degraded" if degraded else "healthy", "checks": checks}
    return JSONResponse(status_code=503 if degraded else 200, content=body)
