"""Task domain interface consumed by the agent core."""

from __future__ import annotations

import builtins
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Protocol


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class Urgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class Recurrence(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DomainError(Exception):
    """Business-rule rejection. The message is shown to the model verbatim."""


class TaskNotFoundError(DomainError):
    """Raised when a task does not exist for the current scope."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


class DomainUnavailableError(Exception):
    """Raised when the task collaborator cannot be reached."""


@dataclass(frozen=True)
class Scope:
    """Resolved identity under which domain operations run."""

    user_id: int
    prompt_preferences: str | None = None


@dataclass(frozen=True)
class Task:
    """Read-only task summary returned by the store."""

    id: int
    owner_id: int
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    urgency: Urgency = Urgency.NORMAL
    due_date: date | None = None
    recurrence: Recurrence = Recurrence.NONE
    assignee_id: int | None = None
    assigned_group_id: int | None = None
    prerequisite_ids: tuple[int, ...] = ()
    dependent_ids: tuple[int, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "urgency": self.urgency.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "recurrence": self.recurrence.value,
            "assignee_id": self.assignee_id,
            "assigned_group_id": self.assigned_group_id,
            "prerequisites": list(self.prerequisite_ids),
            "dependents": list(self.dependent_ids),
        }


@dataclass(frozen=True)
class TaskFilter:
    status: TaskStatus | None = None
    urgency: Urgency | None = None
    assignee_id: int | None = None
    include_done: bool = True


@dataclass
class TaskFields:
    """Partial field set for create/update; ``None`` means "not supplied"."""

    title: str | None = None
    description: str | None = None
    urgency: Urgency | None = None
    due_date: date | None = None
    recurrence: Recurrence | None = None
    status: TaskStatus | None = None
    prerequisite_ids: list[int] = field(default_factory=list)

    def changes(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (
                ("title", self.title),
                ("description", self.description),
                ("urgency", self.urgency),
                ("due_date", self.due_date),
                ("recurrence", self.recurrence),
                ("status", self.status),
            )
            if value is not None
        }


class TaskStore(Protocol):
    """Narrow operation interface of the task collaborator.

    Every method raises ``DomainError`` on a business-rule rejection and
    ``DomainUnavailableError`` when the backing store cannot be reached.
    """

    def ping(self) -> None: ...

    def create(self, scope: Scope, fields: TaskFields) -> Task: ...

    def get(self, scope: Scope, task_id: int) -> Task: ...

    def update(self, scope: Scope, task_id: int, fields: TaskFields) -> Task: ...

    def set_status(self, scope: Scope, task_id: int, status: TaskStatus) -> Task: ...

    def assign(self, scope: Scope, task_id: int, *, user_id: int | None, group_id: int | None) -> Task: ...

    def link_prerequisite(self, scope: Scope, blocked_id: int, prereq_id: int) -> Task: ...

    def unlink_prerequisite(self, scope: Scope, blocked_id: int, prereq_id: int) -> Task: ...

    def delete(self, scope: Scope, task_id: int) -> Task: ...

    def list(self, scope: Scope, task_filter: TaskFilter | None = None) -> builtins.list[Task]: ...
