import os
from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ.pop("RATE_LIMIT_STORAGE_URI", None)

from quickvibe import crud
from quickvibe.agent.registry import AgentRegistry
from quickvibe.api.deps import get_db
from quickvibe.core.security import create_access_token
from quickvibe.main import app
from quickvibe.models import User, UserCreate

AGENT_FIXTURES = {
    "agents/frontend-developer.md": ("frontend-developer", "sonnet", "Builds UI components"),
    "agents/backend-architect.md": ("backend-architect", "opus", "Designs APIs"),
    "agents/backend-security-coder.md": ("backend-security-coder", "sonnet", "Secures backends"),
    "agents/security-auditor.md": ("security-auditor", "opus", "Audits security"),
    "agents/test-automator.md": ("test-automator", "haiku", "Writes tests"),
    "agents/ui-ux-designer.md": ("ui-ux-designer", "sonnet", "Designs interfaces"),
    "workflows/feature-development.md": ("feature-development", "sonnet", "Runs a feature team"),
}


def write_agent(root: Path, relative: str, name: str, model: str, description: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        f"---\nname: {name}\ndescription: {description}\nmodel: {model}\ntools: Read, Write\n---\n"
        f"You are {name}.\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def agents_dir(tmp_path: Path) -> Path:
    for relative, (name, model, description) in AGENT_FIXTURES.items():
        write_agent(tmp_path, relative, name, model, description)
    return tmp_path


@pytest.fixture
def registry(agents_dir: Path) -> AgentRegistry:
    registry = AgentRegistry()
    registry.load(agents_dir)
    return registry


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db(db_engine: Engine) -> Generator[Session, None, None]:
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db: Session, email: str = "owner@example.com", password: str = "secret123") -> User:
    return crud.create_user(
        session=db, user_create=UserCreate(email=email, password=password, full_name=None)
    )


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(db: Session) -> User:
    return make_user(db)


@pytest.fixture
def other_user(db: Session) -> User:
    return make_user(db, email="friend@example.com")


@pytest.fixture
def user_headers(user: User) -> dict[str, str]:
    return auth_headers(user)


@pytest.fixture
def other_headers(other_user: User) -> dict[str, str]:
    return auth_headers(other_user)


@pytest.fixture
def user_factory(db: Session):
    def factory(email: str, password: str = "secret123") -> User:
        return make_user(db, email=email, password=password)

    return factory


@pytest.fixture
def headers_for():
    return auth_headers
