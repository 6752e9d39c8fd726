import logging

from sqlalchemy import text
from sqlmodel import Session, SQLModel, create_engine

from quickvibe.core.config import settings

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args(settings.DATABASE_URL))


def init_db(session: Session) -> None:
    # Tables should be created with migrations in production; this covers local and test setups.
    from quickvibe import models  # noqa: F401

    SQLModel.metadata.create_all(session.get_bind())
    logger.info("Database tables ensured on %s", session.get_bind().url)


def ping(session: Session) -> None:
    session.connection().execute(text("SELECT 1"))
