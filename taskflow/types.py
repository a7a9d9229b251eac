"""
TaskFlow type definitions.

This module contains all public types used by the TaskFlow data-access layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Backend(Enum):
    """Which persistence path served an operation."""
    REMOTE = "remote"
    LOCAL = "local"


class TaskStatus(Enum):
    """Lifecycle states of a task."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(Enum):
    """Task priorities, most urgent last."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class Result:
    """Uniform outcome of every public gateway and store operation.

    Either ``success=True`` with ``data`` or ``success=False`` with
    ``error`` and a ``timestamp``. Never raised, always returned.
    """
    success: bool
    data: Any = None
    error: str | None = None
    timestamp: str | None = None
    status_code: int | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, status_code: int | None = None, data: Any = None) -> "Result":
        return cls(
            success=False,
            data=data,
            error=error,
            timestamp=utc_now_iso(),
            status_code=status_code,
        )

    def __bool__(self) -> bool:
        """Allow `if result:` checks."""
        return self.success


def _pick(data: dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


@dataclass
class Task:
    """A single task record.

    The wire shape (remote service and local store alike) uses camelCase keys;
    ``from_dict`` also accepts snake_case for hand-written input.
    """
    id: str
    title: str
    description: str = ""
    category: str = "general"
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None
    user_id: str | None = None

    @property
    def completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_overdue(self, now: datetime | None = None) -> bool:
        """True when the task is still open and its due date has passed."""
        if self.completed or not self.due_date:
            return False
        try:
            due = datetime.fromisoformat(self.due_date)
        except ValueError:
            return False
        now = now or datetime.now(timezone.utc)
        if due.tzinfo is None:
            due = due.replace(tzinfo=timezone.utc)
        return due < now

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Decode a task record.

        Raises:
            ValueError: If the record is not a mapping, lacks ``id``/``title``,
                or carries an unknown status or priority.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Task record must be an object, got {type(data).__name__}")
        if data.get("id") in (None, ""):
            raise ValueError("Task record has no id")
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError(f"Task {data['id']} has no title")

        tags = data.get("tags") or []
        if not isinstance(tags, list):
            raise ValueError(f"Task {data['id']} has invalid tags")

        return cls(
            id=str(data["id"]),
            title=title,
            description=data.get("description") or "",
            category=data.get("category") or "general",
            priority=TaskPriority(data.get("priority") or "medium"),
            status=TaskStatus(data.get("status") or "pending"),
            due_date=_pick(data, "dueDate", "due_date"),
            tags=[str(t) for t in tags],
            created_at=_pick(data, "createdAt", "created_at") or utc_now_iso(),
            updated_at=_pick(data, "updatedAt", "updated_at") or utc_now_iso(),
            completed_at=_pick(data, "completedAt", "completed_at"),
            user_id=_pick(data, "userId", "user_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority.value,
            "status": self.status.value,
            "dueDate": self.due_date,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "completedAt": self.completed_at,
            "userId": self.user_id,
        }


@dataclass
class UserProfile:
    """Public user record (never carries the password hash)."""
    id: str
    name: str
    email: str
    role: str = "user"
    avatar: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    last_login: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserProfile":
        """Decode a user record.

        Raises:
            ValueError: If the record lacks ``id`` or ``email``.
        """
        if not isinstance(data, dict):
            raise ValueError(f"User record must be an object, got {type(data).__name__}")
        if data.get("id") in (None, ""):
            raise ValueError("User record has no id")
        if not data.get("email"):
            raise ValueError(f"User {data['id']} has no email")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            email=data["email"],
            role=data.get("role") or "user",
            avatar=data.get("avatar"),
            preferences=dict(data.get("preferences") or {}),
            created_at=_pick(data, "createdAt", "created_at"),
            last_login=_pick(data, "lastLogin", "last_login"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "avatar": self.avatar,
            "preferences": dict(self.preferences),
            "createdAt": self.created_at,
            "lastLogin": self.last_login,
        }


@dataclass
class Session:
    """Current authentication state.

    ``token`` is None for a local-only session (created while the remote
    service was unreachable); such a session never unlocks the remote path.
    """
    user: UserProfile
    token: str | None = None

    @property
    def is_remote(self) -> bool:
        return bool(self.token)
