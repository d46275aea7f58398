"""Task domain collaborator interface and reference store."""

from .memory import InMemoryTaskStore
from .ports import (
    DomainError,
    DomainUnavailableError,
    Recurrence,
    Scope,
    Task,
    TaskFields,
    TaskFilter,
    TaskNotFoundError,
    TaskStatus,
    TaskStore,
    Urgency,
)

__all__ = [
    "DomainError",
    "DomainUnavailableError",
    "InMemoryTaskStore",
    "Recurrence",
    "Scope",
    "Task",
    "TaskFields",
    "TaskFilter",
    "TaskNotFoundError",
    "TaskStatus",
    "TaskStore",
    "Urgency",
]
