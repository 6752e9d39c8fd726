import re
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import EmailStr, field_validator
from sqlalchemy import JSON, DateTime, Text, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


PROJECT_TYPES = (
    "WEB_APP",
    "MOBILE_APP",
    "GAME",
    "LANDING_PAGE",
    "CHROME_EXTENSION",
    "NPM_PACKAGE",
    "WEBSITE",
    "API",
    "DASHBOARD",
)
MAX_FILE_BYTES = 50 * 1024

CollaboratorRole = Literal["VIEWER", "EDITOR", "ADMIN"]


def normalize_project_type(value: str) -> str:
    """``mobile-app`` -> ``MOBILE_APP``"""
    return (value or "").strip().upper().replace("-", "_")


# Shared properties
class UserBase(SQLModel):
    email: EmailStr = Field(unique=True, index=True, max_length=255)
    is_active: bool = True
    full_name: str | None = Field(default=None, max_length=100)


class UserRegister(SQLModel):
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=6, max_length=128)
    full_name: str | None = Field(default=None, max_length=100)

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserCreate(UserRegister):
    pass


# Database model, database table inferred from class name
class User(UserBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    hashed_password: str
    plan: str = Field(default="FREE", max_length=20)
    token_balance: int = 10000
    context_used: float = 0
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    projects: list["Project"] = Relationship(back_populates="owner", cascade_delete=True)


class UserPublic(UserBase):
    id: uuid.UUID
    plan: str
    token_balance: int
    created_at: datetime | None = None


class UserSummary(SQLModel):
    id: uuid.UUID
    name: str
    email: str


class TokenStats(SQLModel):
    token_balance: int
    context_used: float
    plan: str
    monthly_tokens_used: int
    monthly_tokens_saved: int


# Generic message
class Message(SQLModel):
    message: str


# JSON payload containing access token
class Token(SQLModel):
    access_token: str
    token_type: str = "bearer"


# Contents of JWT token
class TokenPayload(SQLModel):
    sub: str | None = None


# Projects

class Project(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    project_type: str = Field(index=True, max_length=50)
    active_agents: list[str] = Field(default_factory=list, sa_type=JSON)
    current_code: str | None = Field(default=None, sa_type=Text)
    visibility: str = Field(default="PRIVATE", max_length=10, index=True)
    likes: int = 0
    forks: int = 0
    owner_id: uuid.UUID = Field(
        foreign_key="user.id", nullable=False, ondelete="CASCADE", index=True
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    owner: User | None = Relationship(back_populates="projects")
    messages: list["ChatMessage"] = Relationship(back_populates="project", cascade_delete=True)
    files: list["ProjectFile"] = Relationship(back_populates="project", cascade_delete=True)
    versions: list["ProjectVersion"] = Relationship(back_populates="project", cascade_delete=True)
    collaborators: list["ProjectCollaborator"] = Relationship(back_populates="project", cascade_delete=True)
    invites: list["CollaborationInvite"] = Relationship(back_populates="project", cascade_delete=True)


class ProjectPublic(SQLModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    project_type: str
    active_agents: list[str] = []
    visibility: str
    likes: int = 0
    forks: int = 0
    owner_id: uuid.UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProjectListItem(ProjectPublic):
    message_count: int = 0


class ProjectsPublic(SQLModel):
    data: list[ProjectListItem]
    count: int


class ChatMessageIn(SQLModel):
    id: str | None = None
    role: Literal["user", "assistant"]
    content: str
    tokens_used: int = 0
    context_at_time: float = 0
    pfc_saved: int = 0


class ProjectSave(SQLModel):
    project_id: uuid.UUID | None = None
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    project_type: str = Field(min_length=1, max_length=50)
    active_agents: list[str] = Field(default_factory=list)
    current_code: str | None = None
    visibility: Literal["PRIVATE", "PUBLIC"] | None = None
    messages: list[ChatMessageIn] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("project_type", mode="after")
    @classmethod
    def check_project_type(cls, v: str) -> str:
        normalized = normalize_project_type(v)
        if normalized not in PROJECT_TYPES:
            raise ValueError(f"Unsupported project type: {v}")
        return normalized


class ProjectSaved(SQLModel):
    id: uuid.UUID
    name: str
    owner_id: uuid.UUID


class ChatMessage(SQLModel, table=True):
    # Integer ids are monotonic and double as the pagination cursor.
    id: int | None = Field(default=None, primary_key=True)
    role: str = Field(max_length=20)
    content: str = Field(sa_type=Text)
    tokens_used: int = 0
    context_at_time: float = 0
    pfc_saved: int = 0
    project_id: uuid.UUID = Field(
        foreign_key="project.id", nullable=False, ondelete="CASCADE", index=True
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    project: Project | None = Relationship(back_populates="messages")


class ChatMessagePublic(SQLModel):
    id: int
    role: str
    content: str
    tokens_used: int = 0
    context_at_time: float = 0
    pfc_saved: int = 0
    created_at: datetime | None = None


class ChatMessagesPage(SQLModel):
    data: list[ChatMessagePublic]
    next_cursor: int | None = None
    has_more: bool = False


class ProjectDetail(ProjectPublic):
    current_code: str | None = None
    messages: list[ChatMessagePublic] = []


class ProjectVersion(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    project_id: uuid.UUID = Field(
        foreign_key="project.id", nullable=False, ondelete="CASCADE", index=True
    )
    version_number: int
    code: str = Field(sa_type=Text)
    description: str | None = None
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    project: Project | None = Relationship(back_populates="versions")


# Files

class ProjectFile(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("project_id", "path"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    project_id: uuid.UUID = Field(
        foreign_key="project.id", nullable=False, ondelete="CASCADE", index=True
    )
    path: str = Field(max_length=255)
    content: str = Field(sa_type=Text)
    language: str = Field(max_length=20)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    project: Project | None = Relationship(back_populates="files")


class ProjectFilePublic(SQLModel):
    id: uuid.UUID
    path: str
    content: str
    language: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


FILE_PATH_PATTERN = re.compile(r"^[a-zA-Z0-9_\-./]+$")


class FileOperation(SQLModel):
    type: Literal["create", "update", "delete"]
    path: str = Field(min_length=1, max_length=255)
    content: str | None = Field(default=None, max_length=MAX_FILE_BYTES)
    language: Literal["html", "css", "javascript", "typescript", "json", "markdown", "plaintext"] | None = None
    search: str | None = None
    replace: str | None = None

    @field_validator("path", mode="after")
    @classmethod
    def check_path(cls, v: str) -> str:
        if not FILE_PATH_PATTERN.match(v) or ".." in v.split("/"):
            raise ValueError("Invalid file path")
        return v


class FileOperationsRequest(SQLModel):
    operations: list[FileOperation]

    @field_validator("operations", mode="after")
    @classmethod
    def check_not_empty(cls, v: list[FileOperation]) -> list[FileOperation]:
        if not v:
            raise ValueError("At least one operation is required")
        return v


# Collaboration

class ProjectCollaborator(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("project_id", "user_id"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    project_id: uuid.UUID = Field(
        foreign_key="project.id", nullable=False, ondelete="CASCADE", index=True
    )
    user_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE")
    role: str = Field(default="VIEWER", max_length=10)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    project: Project | None = Relationship(back_populates="collaborators")


class CollaborationInvite(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    project_id: uuid.UUID = Field(
        foreign_key="project.id", nullable=False, ondelete="CASCADE", index=True
    )
    sender_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE")
    receiver_email: str = Field(max_length=255, index=True)
    receiver_id: uuid.UUID | None = Field(default=None, foreign_key="user.id", ondelete="CASCADE")
    role: str = Field(default="VIEWER", max_length=10)
    message: str | None = Field(default=None, max_length=500)
    status: str = Field(default="PENDING", max_length=10)  # PENDING, ACCEPTED, DECLINED, EXPIRED
    expires_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))  # type: ignore
    responded_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))  # type: ignore
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    project: Project | None = Relationship(back_populates="invites")


class InviteCreate(SQLModel):
    project_id: uuid.UUID
    email: EmailStr
    role: CollaboratorRole = "VIEWER"
    message: str | None = Field(default=None, max_length=500)


class InvitePublic(SQLModel):
    id: uuid.UUID
    project_id: uuid.UUID
    project_name: str | None = None
    sender_id: uuid.UUID
    receiver_email: str
    role: str
    message: str | None = None
    status: str
    expires_at: datetime | None = None
    created_at: datetime | None = None


class InviteResponse(SQLModel):
    invite_id: uuid.UUID
    action: Literal["accept", "decline"]


class MemberPublic(SQLModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    joined_at: datetime | None = None


class ProjectFork(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    original_id: uuid.UUID = Field(foreign_key="project.id", nullable=False, ondelete="CASCADE")
    fork_id: uuid.UUID = Field(foreign_key="project.id", nullable=False, ondelete="CASCADE")
    user_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE")
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class ForkRequest(SQLModel):
    project_id: uuid.UUID
    new_name: str | None = Field(default=None, min_length=1, max_length=100)


class LikeRequest(SQLModel):
    project_id: uuid.UUID


class LikeResult(SQLModel):
    liked: bool = True
    likes: int


class TitleRequest(SQLModel):
    prompt: str = Field(min_length=1, max_length=5000)
    project_type: str | None = None


class TitleResult(SQLModel):
    title: str


# Discovery

class DiscoverStats(SQLModel):
    likes: int
    forks: int
    messages: int
    files: int


class DiscoverItem(SQLModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    project_type: str
    creator: UserSummary
    stats: DiscoverStats
    preview: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool


class DiscoverPage(SQLModel):
    data: list[DiscoverItem]
    pagination: Pagination


# Token accounting

class TokenUsage(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(
        foreign_key="user.id", nullable=False, ondelete="CASCADE", index=True
    )
    tokens_used: int
    context_used: float
    saved_tokens: int = 0
    endpoint: str = Field(max_length=100, index=True)
    timestamp: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
