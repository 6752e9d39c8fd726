import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from quickvibe.agent import pfc
from quickvibe.core.security import get_password_hash, verify_password
from quickvibe.models import (
    ChatMessage,
    CollaborationInvite,
    DiscoverItem,
    DiscoverPage,
    DiscoverStats,
    FileOperation,
    InviteCreate,
    MemberPublic,
    Pagination,
    Project,
    ProjectCollaborator,
    ProjectFile,
    ProjectFork,
    ProjectListItem,
    ProjectSave,
    ProjectVersion,
    TokenStats,
    TokenUsage,
    User,
    UserCreate,
    UserSummary,
    get_datetime_utc,
    normalize_project_type,
)

logger = logging.getLogger(__name__)

INVITE_TTL = timedelta(days=7)
PREVIEW_CHARS = 500


class NotFoundError(LookupError):
    pass


class NotAllowedError(PermissionError):
    pass


class ConflictError(ValueError):
    pass


class FileOperationError(ValueError):
    pass


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Users

def create_user(*, session: Session, user_create: UserCreate) -> User:
    db_obj = User.model_validate(
        user_create, update={"hashed_password": get_password_hash(user_create.password)}
    )
    session.add(db_obj)
    session.commit()
    session.refresh(db_obj)
    return db_obj


def get_user_by_email(*, session: Session, email: str) -> User | None:
    statement = select(User).where(User.email == email.lower())
    session_user = session.exec(statement).first()
    return session_user


# Argon2 hash of a random password, verified when the email is unknown
DUMMY_HASH = "$argon2id$v=19$m=65536,t=3,p=4$MjQyZWE1MzBjYjJlZTI0Yw$YTU4NGM5ZTZmYjE2NzZlZjY0ZWY3ZGRkY2U2OWFjNjk"


def authenticate(*, session: Session, email: str, password: str) -> User | None:
    db_user = get_user_by_email(session=session, email=email)
    if not db_user:
        verify_password(password, DUMMY_HASH)
        return None
    verified, updated_password_hash = verify_password(password, db_user.hashed_password)
    if not verified:
        return None
    if updated_password_hash:
        db_user.hashed_password = updated_password_hash
        session.add(db_user)
        session.commit()
        session.refresh(db_user)
    return db_user


# Projects

def get_project(*, session: Session, project_id: uuid.UUID) -> Project:
    project = session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


def get_collaborator(
    *, session: Session, project_id: uuid.UUID, user_id: uuid.UUID
) -> ProjectCollaborator | None:
    statement = select(ProjectCollaborator).where(
        ProjectCollaborator.project_id == project_id,
        ProjectCollaborator.user_id == user_id,
    )
    return session.exec(statement).first()


def can_view_project(*, session: Session, project: Project, user_id: uuid.UUID | None) -> bool:
    if project.visibility == "PUBLIC":
        return True
    if user_id is None:
        return False
    if project.owner_id == user_id:
        return True
    return get_collaborator(session=session, project_id=project.id, user_id=user_id) is not None


def can_edit_project(*, session: Session, project: Project, user_id: uuid.UUID) -> bool:
    if project.owner_id == user_id:
        return True
    collaborator = get_collaborator(session=session, project_id=project.id, user_id=user_id)
    return collaborator is not None and collaborator.role != "VIEWER"


def save_project(*, session: Session, project_in: ProjectSave, owner_id: uuid.UUID) -> Project:
    """Create a project, or overwrite an owned one and replace its message history."""
    is_new = project_in.project_id is None
    if is_new:
        project = Project(
            name=project_in.name or "Untitled Project",
            description=project_in.description or "",
            project_type=project_in.project_type,
            active_agents=list(project_in.active_agents),
            current_code=project_in.current_code or "",
            visibility=project_in.visibility or "PRIVATE",
            owner_id=owner_id,
        )
        session.add(project)
        session.flush()
    else:
        project = session.get(Project, project_in.project_id)
        if not project or project.owner_id != owner_id:
            raise NotFoundError("Project not found")
        project.name = project_in.name or "Untitled Project"
        project.description = project_in.description or ""
        project.active_agents = list(project_in.active_agents)
        project.current_code = project_in.current_code or ""
        if project_in.visibility:
            project.visibility = project_in.visibility
        project.updated_at = get_datetime_utc()
        session.add(project)
        for message in list_project_messages(session=session, project_id=project.id):
            session.delete(message)

    for message in project_in.messages:
        session.add(
            ChatMessage(
                project_id=project.id,
                role=message.role,
                content=message.content,
                tokens_used=message.tokens_used,
                context_at_time=message.context_at_time,
                pfc_saved=message.pfc_saved,
            )
        )

    if is_new and project_in.current_code:
        session.add(
            ProjectVersion(
                project_id=project.id,
                version_number=1,
                code=project_in.current_code,
                description="Initial version",
            )
        )

    session.commit()
    session.refresh(project)
    logger.info(
        "Saved project %s (%s, %d messages)",
        project.id,
        "created" if is_new else "updated",
        len(project_in.messages),
    )
    return project


def list_project_messages(*, session: Session, project_id: uuid.UUID) -> list[ChatMessage]:
    statement = (
        select(ChatMessage)
        .where(ChatMessage.project_id == project_id)
        .order_by(col(ChatMessage.id).asc())
    )
    return list(session.exec(statement).all())


def list_user_projects(*, session: Session, owner_id: uuid.UUID) -> list[ProjectListItem]:
    message_count = (
        select(ChatMessage.project_id, func.count().label("message_count"))
        .group_by(ChatMessage.project_id)
        .subquery()
    )
    statement = (
        select(Project, func.coalesce(message_count.c.message_count, 0))
        .outerjoin(message_count, message_count.c.project_id == Project.id)
        .where(Project.owner_id == owner_id)
        .order_by(col(Project.updated_at).desc())
    )
    return [
        ProjectListItem.model_validate(project, update={"message_count": count})
        for project, count in session.exec(statement).all()
    ]


def delete_project(*, session: Session, project_id: uuid.UUID, user_id: uuid.UUID) -> None:
    project = get_project(session=session, project_id=project_id)
    if project.owner_id != user_id:
        raise NotAllowedError("Not enough permissions")
    session.delete(project)
    session.commit()
    logger.info("Deleted project %s", project_id)


def fork_project(
    *,
    session: Session,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    new_name: str | None = None,
) -> Project:
    original = get_project(session=session, project_id=project_id)
    if not can_view_project(session=session, project=original, user_id=user_id):
        raise NotFoundError("Project not found")

    fork = Project(
        name=new_name or f"{original.name} (Fork)"[:100],
        description=original.description,
        project_type=original.project_type,
        active_agents=list(original.active_agents or []),
        current_code=original.current_code,
        visibility="PRIVATE",
        owner_id=user_id,
    )
    session.add(fork)
    session.flush()
    session.add(ProjectFork(original_id=original.id, fork_id=fork.id, user_id=user_id))
    original.forks += 1
    session.add(original)
    session.commit()
    session.refresh(fork)
    return fork


def like_project(*, session: Session, project_id: uuid.UUID) -> int:
    project = get_project(session=session, project_id=project_id)
    project.likes += 1
    session.add(project)
    session.commit()
    session.refresh(project)
    return project.likes


# Messages

def get_messages_paginated(
    *,
    session: Session,
    project_id: uuid.UUID,
    cursor: int | None = None,
    limit: int = 50,
) -> tuple[list[ChatMessage], int | None, bool]:
    """Newest first. Pass the returned cursor back to fetch older messages."""
    statement = select(ChatMessage).where(ChatMessage.project_id == project_id)
    if cursor is not None:
        statement = statement.where(col(ChatMessage.id) < cursor)
    statement = statement.order_by(col(ChatMessage.id).desc()).limit(limit + 1)

    rows = list(session.exec(statement).all())
    has_more = len(rows) > limit
    messages = rows[:limit]
    next_cursor = messages[-1].id if has_more and messages else None
    return messages, next_cursor, has_more


# Files

def list_project_files(*, session: Session, project_id: uuid.UUID) -> list[ProjectFile]:
    statement = (
        select(ProjectFile)
        .where(ProjectFile.project_id == project_id)
        .order_by(col(ProjectFile.path).asc())
    )
    return list(session.exec(statement).all())


def get_project_file(*, session: Session, project_id: uuid.UUID, path: str) -> ProjectFile | None:
    statement = select(ProjectFile).where(
        ProjectFile.project_id == project_id, ProjectFile.path == path
    )
    return session.exec(statement).first()


def _apply_file_operation(
    session: Session, project_id: uuid.UUID, op: FileOperation
) -> ProjectFile | None:
    existing = get_project_file(session=session, project_id=project_id, path=op.path)

    if op.type == "create":
        if op.content is None or not op.language:
            raise FileOperationError(f"Create operation missing content or language for {op.path}")
        if existing:
            existing.content = op.content
            existing.updated_at = get_datetime_utc()
            session.add(existing)
            return existing
        created = ProjectFile(
            project_id=project_id, path=op.path, content=op.content, language=op.language
        )
        session.add(created)
        return created

    if op.type == "update":
        if not existing:
            raise FileOperationError(f"File not found: {op.path}")
        if op.search is not None and op.replace is not None:
            occurrences = existing.content.count(op.search) if op.search else 0
            if occurrences == 0:
                raise FileOperationError(f"Search string not found in {op.path}")
            if occurrences > 1:
                raise FileOperationError(
                    f"Search string found {occurrences} times in {op.path}. Please be more specific."
                )
            existing.content = existing.content.replace(op.search, op.replace, 1)
        elif op.content is not None:
            existing.content = op.content
        else:
            raise FileOperationError(f"Update operation missing content or search/replace for {op.path}")
        existing.updated_at = get_datetime_utc()
        session.add(existing)
        return existing

    if not existing:
        raise FileOperationError(f"File not found: {op.path}")
    session.delete(existing)
    return None


def apply_file_operations(
    *, session: Session, project_id: uuid.UUID, operations: list[FileOperation]
) -> list[ProjectFile]:
    """All operations are committed together; the first failure rolls back the batch."""
    touched: dict[str, ProjectFile] = {}
    try:
        for op in operations:
            result = _apply_file_operation(session, project_id, op)
            session.flush()
            if result is None:
                touched.pop(op.path, None)
            else:
                touched[op.path] = result
    except Exception:
        session.rollback()
        raise
    session.commit()
    files = [file for file in touched.values() if file in session]
    for file in files:
        session.refresh(file)
    logger.info("Applied %d file operations to project %s", len(operations), project_id)
    return files


# Collaboration

def create_invite(
    *, session: Session, invite_in: InviteCreate, sender_id: uuid.UUID
) -> CollaborationInvite:
    project = get_project(session=session, project_id=invite_in.project_id)
    if not can_edit_project(session=session, project=project, user_id=sender_id):
        raise NotAllowedError("Insufficient permissions")

    receiver_email = invite_in.email.lower()
    existing = session.exec(
        select(CollaborationInvite).where(
            CollaborationInvite.project_id == project.id,
            CollaborationInvite.receiver_email == receiver_email,
            CollaborationInvite.status == "PENDING",
        )
    ).first()
    if existing:
        raise ConflictError("Invitation already sent")

    receiver = get_user_by_email(session=session, email=receiver_email)
    invite = CollaborationInvite(
        project_id=project.id,
        sender_id=sender_id,
        receiver_email=receiver_email,
        receiver_id=receiver.id if receiver else None,
        role=invite_in.role,
        message=invite_in.message,
        expires_at=get_datetime_utc() + INVITE_TTL,
    )
    session.add(invite)
    session.commit()
    session.refresh(invite)
    return invite


def list_pending_invites(*, session: Session, user: User) -> list[CollaborationInvite]:
    statement = (
        select(CollaborationInvite)
        .where(
            or_(
                CollaborationInvite.receiver_id == user.id,
                CollaborationInvite.receiver_email == user.email.lower(),
            ),
            CollaborationInvite.status == "PENDING",
            col(CollaborationInvite.expires_at) >= get_datetime_utc(),
        )
        .order_by(col(CollaborationInvite.created_at).desc())
    )
    return list(session.exec(statement).all())


def respond_to_invite(
    *, session: Session, invite_id: uuid.UUID, user: User, action: str
) -> CollaborationInvite:
    invite = session.get(CollaborationInvite, invite_id)
    if not invite:
        raise NotFoundError("Invitation not found")
    if invite.receiver_id != user.id and invite.receiver_email != user.email.lower():
        raise NotAllowedError("Invitation is addressed to another user")
    if invite.status != "PENDING":
        raise ConflictError(f"Invitation already {invite.status.lower()}")

    expires_at = _as_utc(invite.expires_at)
    if expires_at and expires_at < get_datetime_utc():
        invite.status = "EXPIRED"
        session.add(invite)
        session.commit()
        raise ConflictError("Invitation expired")

    if action == "accept":
        if not get_collaborator(session=session, project_id=invite.project_id, user_id=user.id):
            session.add(
                ProjectCollaborator(project_id=invite.project_id, user_id=user.id, role=invite.role)
            )
        invite.status = "ACCEPTED"
    elif action == "decline":
        invite.status = "DECLINED"
    else:
        raise ValueError(f"Invalid action: {action}")

    invite.receiver_id = user.id
    invite.responded_at = get_datetime_utc()
    session.add(invite)
    session.commit()
    session.refresh(invite)
    return invite


def _display_name(user: User) -> str:
    return user.full_name or user.email


def list_members(*, session: Session, project_id: uuid.UUID) -> list[MemberPublic]:
    project = get_project(session=session, project_id=project_id)
    owner = session.get(User, project.owner_id)
    members = [
        MemberPublic(
            id=owner.id,
            name=_display_name(owner),
            email=owner.email,
            role="OWNER",
            joined_at=project.created_at,
        )
    ]
    statement = (
        select(ProjectCollaborator, User)
        .join(User, col(User.id) == ProjectCollaborator.user_id)
        .where(ProjectCollaborator.project_id == project_id)
        .order_by(col(ProjectCollaborator.created_at).asc())
    )
    for collaborator, user in session.exec(statement).all():
        members.append(
            MemberPublic(
                id=user.id,
                name=_display_name(user),
                email=user.email,
                role=collaborator.role,
                joined_at=collaborator.created_at,
            )
        )
    return members


def remove_member(
    *, session: Session, project_id: uuid.UUID, user_id: uuid.UUID, requester_id: uuid.UUID
) -> None:
    project = get_project(session=session, project_id=project_id)
    if project.owner_id != requester_id and user_id != requester_id:
        raise NotAllowedError("Insufficient permissions")
    collaborator = get_collaborator(session=session, project_id=project_id, user_id=user_id)
    if collaborator:
        session.delete(collaborator)
        session.commit()


# Discovery

DISCOVER_SORTS: dict[str, Any] = {
    "popular": col(Project.likes).desc(),
    "trending": col(Project.updated_at).desc(),
    "forks": col(Project.forks).desc(),
    "recent": col(Project.created_at).desc(),
}


def discover_projects(
    *,
    session: Session,
    category: str | None = None,
    search: str | None = None,
    sort: str = "recent",
    page: int = 1,
    limit: int = 12,
) -> DiscoverPage:
    conditions = [Project.visibility == "PUBLIC"]
    if category and category != "all":
        conditions.append(Project.project_type == normalize_project_type(category))
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(
            or_(
                func.lower(Project.name).like(pattern),
                func.lower(func.coalesce(Project.description, "")).like(pattern),
            )
        )

    total = session.exec(select(func.count()).select_from(Project).where(*conditions)).one()
    offset = (page - 1) * limit
    statement = (
        select(Project, User)
        .join(User, col(User.id) == Project.owner_id)
        .where(*conditions)
        .order_by(DISCOVER_SORTS.get(sort, DISCOVER_SORTS["recent"]))
        .offset(offset)
        .limit(limit)
    )
    rows = session.exec(statement).all()
    project_ids = [project.id for project, _ in rows]
    message_counts = _count_by_project(session, ChatMessage, project_ids)
    file_counts = _count_by_project(session, ProjectFile, project_ids)

    data = [
        DiscoverItem(
            id=project.id,
            name=project.name,
            description=project.description,
            project_type=project.project_type,
            creator=UserSummary(id=owner.id, name=_display_name(owner), email=owner.email),
            stats=DiscoverStats(
                likes=project.likes,
                forks=project.forks,
                messages=message_counts.get(project.id, 0),
                files=file_counts.get(project.id, 0),
            ),
            preview=(project.current_code or "")[:PREVIEW_CHARS],
            created_at=project.created_at,
            updated_at=project.updated_at,
        )
        for project, owner in rows
    ]
    return DiscoverPage(
        data=data,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
            has_more=offset + limit < total,
        ),
    )


def _count_by_project(session: Session, model: Any, project_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    if not project_ids:
        return {}
    statement = (
        select(model.project_id, func.count())
        .where(col(model.project_id).in_(project_ids))
        .group_by(model.project_id)
    )
    return dict(session.exec(statement).all())


# Token usage

def track_token_usage(
    *,
    session: Session,
    user_id: uuid.UUID,
    tokens_used: int,
    endpoint: str,
    saved_tokens: int = 0,
) -> pfc.PFCMetrics:
    metrics = pfc.compute_metrics(tokens_used, saved_tokens)
    session.add(
        TokenUsage(
            user_id=user_id,
            tokens_used=tokens_used,
            context_used=metrics.context_percentage,
            saved_tokens=metrics.pfc_saved,
            endpoint=endpoint,
        )
    )
    user = session.get(User, user_id)
    if not user:
        session.rollback()
        raise NotFoundError("User not found")
    user.token_balance -= tokens_used
    user.context_used = metrics.context_percentage
    session.add(user)
    session.commit()
    return metrics


def has_tokens(*, session: Session, user_id: uuid.UUID, required_tokens: int) -> bool:
    user = session.get(User, user_id)
    return user is not None and user.token_balance >= required_tokens


def get_user_token_stats(*, session: Session, user_id: uuid.UUID) -> TokenStats:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    start_of_month = get_datetime_utc().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    used, saved = session.exec(
        select(
            func.coalesce(func.sum(TokenUsage.tokens_used), 0),
            func.coalesce(func.sum(TokenUsage.saved_tokens), 0),
        ).where(
            TokenUsage.user_id == user_id,
            col(TokenUsage.timestamp) >= start_of_month,
        )
    ).one()
    return TokenStats(
        token_balance=user.token_balance,
        context_used=user.context_used,
        plan=user.plan,
        monthly_tokens_used=used,
        monthly_tokens_saved=saved,
    )
