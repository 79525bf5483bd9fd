"""Project and chat-message persistence.

Defines the ``Project`` / ``ChatMessage`` models, the access rules that guard
them, and ``JsonProjectStore``: an in-memory store that persists itself to
two JSON documents after every write. Every write is a single wholesale
update; there is no version check, so concurrent writers race and the last
one wins.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from peaks.filetree import FileNode, parse_tree
from peaks.utils import load_records, save_records


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class NotFoundError(Exception):
    """Raised when a project does not exist."""

    def __init__(self, project_id: int) -> None:
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class AccessDeniedError(Exception):
    """Raised when a caller fails an ownership or visibility check."""

    def __init__(self, project_id: int, user_id: str | None) -> None:
        self.project_id = project_id
        self.user_id = user_id
        super().__init__("Access denied")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _ApiModel(BaseModel):
    """Serialises to the camelCase keys the web client expects."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Sender(str, Enum):
    """Author of a chat message."""
    USER = "user"
    AI = "ai"


class Project(_ApiModel):
    """A persisted project owning a file tree, a type label and a chat log."""

    id: int
    owner_id: str = Field(..., alias="userId")
    name: str
    description: str = ""
    type: str = "Web Application"
    files: list[FileNode] = Field(default_factory=list)
    is_public: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("files", mode="before")
    @classmethod
    def _validate_tree(cls, value: Any) -> list[FileNode]:
        return parse_tree(value if value is not None else [])


class ChatMessage(_ApiModel):
    """One entry of a project's append-only chat log."""

    id: int
    project_id: int
    sender: Sender
    content: str
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Access rules
# ---------------------------------------------------------------------------


def can_read(project: Project, user_id: str | None) -> bool:
    return project.is_public or (user_id is not None and project.owner_id == user_id)


def ensure_readable(project: Project, user_id: str | None) -> Project:
    """Owner or public project, else ``AccessDeniedError``."""
    if not can_read(project, user_id):
        raise AccessDeniedError(project.id, user_id)
    return project


def ensure_owner(project: Project, user_id: str | None) -> Project:
    """Owner only, else ``AccessDeniedError``."""
    if user_id is None or project.owner_id != user_id:
        raise AccessDeniedError(project.id, user_id)
    return project


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

_UPDATABLE_FIELDS = {"name", "description", "type", "files", "is_public"}


class JsonProjectStore:
    """Project store kept in memory and mirrored to JSON files.

    Pass ``data_dir=None`` for a purely in-memory store. Returned models are
    copies; mutating them does not touch the store.
    """

    def __init__(self, data_dir: str | Path | None = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self._projects: dict[int, Project] = {}
        self._messages: list[ChatMessage] = []
        self._next_project_id = 1
        self._next_message_id = 1
        self._lock = asyncio.Lock()
        if self.data_dir is not None:
            self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def projects_path(self) -> Path | None:
        return self.data_dir / "projects.json" if self.data_dir else None

    @property
    def messages_path(self) -> Path | None:
        return self.data_dir / "messages.json" if self.data_dir else None

    def _load(self) -> None:
        assert self.projects_path is not None and self.messages_path is not None
        for raw in load_records(self.projects_path):
            project = Project.model_validate(raw)
            self._projects[project.id] = project
        self._messages = [ChatMessage.model_validate(raw) for raw in load_records(self.messages_path)]
        self._next_project_id = max(self._projects, default=0) + 1
        self._next_message_id = max((m.id for m in self._messages), default=0) + 1

    async def _persist(
        self,
        projects: dict[int, Project] | None = None,
        messages: list[ChatMessage] | None = None,
    ) -> None:
        """Write the candidate collections to disk (``None`` keeps a file as is).

        Callers commit the candidates to memory only after this returns, so a
        failed write leaves the store unchanged.
        """
        if self.data_dir is None:
            return
        if projects is not None:
            await save_records(
                [p.model_dump(mode="json", by_alias=True) for p in projects.values()],
                self.projects_path,
            )
        if messages is not None:
            await save_records(
                [m.model_dump(mode="json", by_alias=True) for m in messages],
                self.messages_path,
            )

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def list_projects(self, owner_id: str) -> list[Project]:
        """Projects owned by *owner_id*, most recently updated first."""
        owned = [p for p in self._projects.values() if p.owner_id == owner_id]
        owned.sort(key=lambda p: p.updated_at, reverse=True)
        return [p.model_copy(deep=True) for p in owned]

    async def create_project(
        self,
        owner_id: str,
        name: str,
        description: str = "",
        type: str = "Web Application",
        is_public: bool = False,
        files: list[FileNode] | None = None,
    ) -> Project:
        """Create a project (``files`` defaults to an empty tree)."""
        async with self._lock:
            project = Project(
                id=self._next_project_id,
                owner_id=owner_id,
                name=name,
                description=description,
                type=type,
                is_public=is_public,
                files=files or [],
            )
            await self._persist(projects={**self._projects, project.id: project})
            self._projects[project.id] = project
            self._next_project_id += 1
            return project.model_copy(deep=True)

    async def get_project(self, project_id: int) -> Project:
        """Fetch one project or raise ``NotFoundError``."""
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError(project_id)
        return project.model_copy(deep=True)

    async def update_project(self, project_id: int, **fields: Any) -> Project:
        """Wholesale update of the given fields (``files`` replaces the tree)."""
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update project field(s): {', '.join(sorted(unknown))}")
        async with self._lock:
            current = self._projects.get(project_id)
            if current is None:
                raise NotFoundError(project_id)
            data = current.model_dump()
            data.update(fields)
            data["updated_at"] = _utcnow()
            updated = Project.model_validate(data)
            await self._persist(projects={**self._projects, project_id: updated})
            self._projects[project_id] = updated
            return updated.model_copy(deep=True)

    async def delete_project(self, project_id: int) -> None:
        """Delete a project and its chat log."""
        async with self._lock:
            if project_id not in self._projects:
                raise NotFoundError(project_id)
            projects = {pid: p for pid, p in self._projects.items() if pid != project_id}
            messages = [m for m in self._messages if m.project_id != project_id]
            await self._persist(projects=projects, messages=messages)
            self._projects = projects
            self._messages = messages

    # ------------------------------------------------------------------
    # Chat log
    # ------------------------------------------------------------------

    async def list_messages(self, project_id: int) -> list[ChatMessage]:
        """Chat log of a project in creation order."""
        return [m.model_copy(deep=True) for m in self._messages if m.project_id == project_id]

    async def append_message(
        self,
        project_id: int,
        sender: Sender | str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChatMessage:
        """Append one message to a project's log."""
        async with self._lock:
            if project_id not in self._projects:
                raise NotFoundError(project_id)
            message = ChatMessage(
                id=self._next_message_id,
                project_id=project_id,
                sender=Sender(sender),
                content=content,
                metadata=metadata,
            )
            await self._persist(messages=[*self._messages, message])
            self._messages.append(message)
            self._next_message_id += 1
            return message.model_copy(deep=True)
