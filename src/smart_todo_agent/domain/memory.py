"""In-memory task store implementing the task domain rules."""

from __future__ import annotations

import builtins
import threading
from dataclasses import dataclass, replace
from datetime import date, timedelta

from loguru import logger

from smart_todo_agent.domain.ports import (
    DomainError,
    Recurrence,
    Scope,
    Task,
    TaskFields,
    TaskFilter,
    TaskNotFoundError,
    TaskStatus,
    Urgency,
)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 10_000

_RECURRENCE_STEP: dict[Recurrence, timedelta] = {
    Recurrence.DAILY: timedelta(days=1),
    Recurrence.WEEKLY: timedelta(days=7),
    Recurrence.MONTHLY: timedelta(days=30),
    Recurrence.YEARLY: timedelta(days=365),
}
_STATUS_ORDER = {TaskStatus.TODO: 0, TaskStatus.IN_PROGRESS: 1, TaskStatus.DONE: 2}
_URGENCY_ORDER = {Urgency.LOW: 0, Urgency.NORMAL: 1, Urgency.HIGH: 2, Urgency.CRITICAL: 3}


@dataclass
class _TaskRow:
    id: int
    owner_id: int
    title: str
    description: str | None
    status: TaskStatus
    urgency: Urgency
    due_date: date | None
    recurrence: Recurrence
    assignee_id: int | None
    assigned_group_id: int | None


class InMemoryTaskStore:
    """Thread-safe task store keyed by owner.

    Mirrors the behavior of the production task context: ownership scoping,
    field validation, prerequisite gating on completion and recurrence roll-over.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[int, _TaskRow] = {}
        # (blocked_id, prereq_id)
        self._links: set[tuple[int, int]] = set()
        self._next_id = 1

    def ping(self) -> None:
        return None

    def create(self, scope: Scope, fields: TaskFields) -> Task:
        with self._lock:
            title = _validate_title(fields.title)
            _validate_description(fields.description)
            if fields.status is TaskStatus.DONE:
                raise DomainError("status: new tasks cannot be created as done")
            for prereq_id in fields.prerequisite_ids:
                self._owned_row(scope, prereq_id)

            row = _TaskRow(
                id=self._next_id,
                owner_id=scope.user_id,
                title=title,
                description=fields.description,
                status=fields.status or TaskStatus.TODO,
                urgency=fields.urgency or Urgency.NORMAL,
                due_date=fields.due_date,
                recurrence=fields.recurrence or Recurrence.NONE,
                assignee_id=scope.user_id,
                assigned_group_id=None,
            )
            self._next_id += 1
            self._rows[row.id] = row
            for prereq_id in dict.fromkeys(fields.prerequisite_ids):
                self._links.add((row.id, prereq_id))
            logger.debug("task.created id={} owner={}", row.id, row.owner_id)
            return self._snapshot(row)

    def get(self, scope: Scope, task_id: int) -> Task:
        with self._lock:
            return self._snapshot(self._owned_row(scope, task_id))

    def update(self, scope: Scope, task_id: int, fields: TaskFields) -> Task:
        with self._lock:
            row = self._owned_row(scope, task_id)
            changes = fields.changes()
            if "title" in changes:
                changes["title"] = _validate_title(changes["title"])
            if "description" in changes:
                _validate_description(changes["description"])
            status = changes.pop("status", None)
            if status is not None:
                self._apply_status(row, status)
            for key, value in changes.items():
                setattr(row, key, value)
            return self._snapshot(row)

    def set_status(self, scope: Scope, task_id: int, status: TaskStatus) -> Task:
        with self._lock:
            row = self._owned_row(scope, task_id)
            self._apply_status(row, status)
            return self._snapshot(row)

    def assign(self, scope: Scope, task_id: int, *, user_id: int | None, group_id: int | None) -> Task:
        with self._lock:
            row = self._owned_row(scope, task_id)
            if user_id is not None and group_id is not None:
                raise DomainError("cannot assign to both a user and a group")
            row.assignee_id = user_id
            row.assigned_group_id = group_id
            return self._snapshot(row)

    def link_prerequisite(self, scope: Scope, blocked_id: int, prereq_id: int) -> Task:
        with self._lock:
            blocked = self._owned_row(scope, blocked_id)
            self._owned_row(scope, prereq_id)
            if blocked_id == prereq_id:
                raise DomainError("a task cannot be its own prerequisite")
            if (blocked_id, prereq_id) in self._links:
                raise DomainError(f"task {prereq_id} is already a prerequisite of task {blocked_id}")
            if self._reaches(prereq_id, blocked_id):
                raise DomainError("prerequisite would create a dependency cycle")
            self._links.add((blocked_id, prereq_id))
            return self._snapshot(blocked)

    def unlink_prerequisite(self, scope: Scope, blocked_id: int, prereq_id: int) -> Task:
        with self._lock:
            blocked = self._owned_row(scope, blocked_id)
            if (blocked_id, prereq_id) not in self._links:
                raise DomainError(f"task {prereq_id} is not a prerequisite of task {blocked_id}")
            self._links.discard((blocked_id, prereq_id))
            return self._snapshot(blocked)

    def delete(self, scope: Scope, task_id: int) -> Task:
        with self._lock:
            row = self._owned_row(scope, task_id)
            snapshot = self._snapshot(row)
            del self._rows[task_id]
            self._links = {link for link in self._links if task_id not in link}
            return snapshot

    def list(self, scope: Scope, task_filter: TaskFilter | None = None) -> builtins.list[Task]:
        task_filter = task_filter or TaskFilter()
        with self._lock:
            rows = [row for row in self._rows.values() if row.owner_id == scope.user_id]
            if task_filter.status is not None:
                rows = [row for row in rows if row.status is task_filter.status]
            elif not task_filter.include_done:
                rows = [row for row in rows if row.status is not TaskStatus.DONE]
            if task_filter.urgency is not None:
                rows = [row for row in rows if row.urgency is task_filter.urgency]
            if task_filter.assignee_id is not None:
                rows = [row for row in rows if row.assignee_id == task_filter.assignee_id]
            rows.sort(
                key=lambda row: (
                    _STATUS_ORDER[row.status],
                    row.due_date is None,
                    row.due_date or date.max,
                    -_URGENCY_ORDER[row.urgency],
                    row.id,
                )
            )
            return [self._snapshot(row) for row in rows]

    def _apply_status(self, row: _TaskRow, status: TaskStatus) -> None:
        if status is TaskStatus.DONE and row.status is not TaskStatus.DONE:
            prereqs = [self._rows[prereq] for blocked, prereq in self._links if blocked == row.id]
            if any(prereq.status is not TaskStatus.DONE for prereq in prereqs):
                raise DomainError("cannot complete: has incomplete prerequisites")
            row.status = status
            self._roll_over(row)
            return
        row.status = status

    def _roll_over(self, row: _TaskRow) -> None:
        step = _RECURRENCE_STEP.get(row.recurrence)
        if step is None:
            return
        follow_up = replace(
            row,
            id=self._next_id,
            status=TaskStatus.TODO,
            due_date=row.due_date + step if row.due_date else None,
        )
        self._next_id += 1
        self._rows[follow_up.id] = follow_up
        logger.debug("task.recurred id={} next_id={}", row.id, follow_up.id)

    def _reaches(self, start: int, target: int) -> bool:
        stack = [start]
        seen: set[int] = set()
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(prereq for blocked, prereq in self._links if blocked == current)
        return False

    def _owned_row(self, scope: Scope, task_id: int) -> _TaskRow:
        row = self._rows.get(task_id)
        if row is None or row.owner_id != scope.user_id:
            raise TaskNotFoundError(task_id)
        return row

    def _snapshot(self, row: _TaskRow) -> Task:
        return Task(
            id=row.id,
            owner_id=row.owner_id,
            title=row.title,
            description=row.description,
            status=row.status,
            urgency=row.urgency,
            due_date=row.due_date,
            recurrence=row.recurrence,
            assignee_id=row.assignee_id,
            assigned_group_id=row.assigned_group_id,
            prerequisite_ids=tuple(sorted(prereq for blocked, prereq in self._links if blocked == row.id)),
            dependent_ids=tuple(sorted(blocked for blocked, prereq in self._links if prereq == row.id)),
        )


def _validate_title(title: str | None) -> str:
    stripped = (title or "").strip()
    if not stripped:
        raise DomainError("title: can't be blank")
    if len(stripped) > MAX_TITLE_LENGTH:
        raise DomainError(f"title: should be at most {MAX_TITLE_LENGTH} character(s)")
    return stripped


def _validate_description(description: str | None) -> None:
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise DomainError(f"description: should be at most {MAX_DESCRIPTION_LENGTH} character(s)")
