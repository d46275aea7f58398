from __future__ import annotations

from datetime import date

import pytest

from smart_todo_agent.domain import (
    DomainError,
    InMemoryTaskStore,
    Recurrence,
    Scope,
    TaskFields,
    TaskFilter,
    TaskNotFoundError,
    TaskStatus,
    Urgency,
)


def test_create_applies_defaults(store: InMemoryTaskStore, scope: Scope) -> None:
    task = store.create(scope, TaskFields(title="  Water plants "))

    assert task.title == "Water plants"
    assert task.status is TaskStatus.TODO
    assert task.urgency is Urgency.NORMAL
    assert task.recurrence is Recurrence.NONE
    assert task.assignee_id == scope.user_id
    assert task.owner_id == scope.user_id


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        (TaskFields(title=" "), "title: can't be blank"),
        (TaskFields(title="x" * 201), "title: should be at most 200 character(s)"),
        (TaskFields(title="x", description="d" * 10_001), "description: should be at most 10000 character(s)"),
        (TaskFields(title="x", status=TaskStatus.DONE), "status: new tasks cannot be created as done"),
    ],
)
def test_create_validation(store: InMemoryTaskStore, scope: Scope, fields: TaskFields, message: str) -> None:
    with pytest.raises(DomainError) as exc_info:
        store.create(scope, fields)
    assert str(exc_info.value) == message


def test_tasks_are_scoped_to_their_owner(store: InMemoryTaskStore, scope: Scope) -> None:
    task = store.create(scope, TaskFields(title="private"))
    other = Scope(user_id=2)

    with pytest.raises(TaskNotFoundError, match=f"task {task.id} not found"):
        store.get(other, task.id)
    assert store.list(other) == []


def test_completion_requires_prerequisites(store: InMemoryTaskStore, scope: Scope) -> None:
    first = store.create(scope, TaskFields(title="first"))
    second = store.create(scope, TaskFields(title="second", prerequisite_ids=[first.id]))

    with pytest.raises(DomainError, match="cannot complete: has incomplete prerequisites"):
        store.set_status(scope, second.id, TaskStatus.DONE)

    store.set_status(scope, first.id, TaskStatus.DONE)
    assert store.set_status(scope, second.id, TaskStatus.DONE).status is TaskStatus.DONE


def test_completing_recurring_task_creates_next_instance(store: InMemoryTaskStore, scope: Scope) -> None:
    task = store.create(scope, TaskFields(title="Standup", recurrence=Recurrence.WEEKLY, due_date=date(2026, 3, 2)))

    store.set_status(scope, task.id, TaskStatus.DONE)

    open_tasks = store.list(scope, TaskFilter(include_done=False))
    assert len(open_tasks) == 1
    assert open_tasks[0].title == "Standup"
    assert open_tasks[0].due_date == date(2026, 3, 9)
    assert open_tasks[0].id != task.id


def test_assign_rejects_user_and_group(store: InMemoryTaskStore, scope: Scope) -> None:
    task = store.create(scope, TaskFields(title="x"))

    with pytest.raises(DomainError, match="cannot assign to both a user and a group"):
        store.assign(scope, task.id, user_id=2, group_id=3)

    assigned = store.assign(scope, task.id, user_id=None, group_id=3)
    assert assigned.assignee_id is None
    assert assigned.assigned_group_id == 3


def test_prerequisite_links(store: InMemoryTaskStore, scope: Scope) -> None:
    a = store.create(scope, TaskFields(title="a"))
    b = store.create(scope, TaskFields(title="b"))
    c = store.create(scope, TaskFields(title="c"))

    store.link_prerequisite(scope, b.id, a.id)
    store.link_prerequisite(scope, c.id, b.id)

    with pytest.raises(DomainError, match="a task cannot be its own prerequisite"):
        store.link_prerequisite(scope, a.id, a.id)
    with pytest.raises(DomainError, match="already a prerequisite"):
        store.link_prerequisite(scope, b.id, a.id)
    with pytest.raises(DomainError, match="prerequisite would create a dependency cycle"):
        store.link_prerequisite(scope, a.id, c.id)
    with pytest.raises(TaskNotFoundError):
        store.link_prerequisite(scope, a.id, 99)

    assert store.get(scope, a.id).dependent_ids == (b.id,)
    assert store.unlink_prerequisite(scope, b.id, a.id).prerequisite_ids == ()
    with pytest.raises(DomainError, match="is not a prerequisite"):
        store.unlink_prerequisite(scope, b.id, a.id)


def test_delete_removes_links(store: InMemoryTaskStore, scope: Scope) -> None:
    a = store.create(scope, TaskFields(title="a"))
    b = store.create(scope, TaskFields(title="b", prerequisite_ids=[a.id]))

    store.delete(scope, a.id)

    assert store.get(scope, b.id).prerequisite_ids == ()
    with pytest.raises(TaskNotFoundError):
        store.get(scope, a.id)


def test_list_ordering_and_filters(store: InMemoryTaskStore, scope: Scope) -> None:
    late = store.create(scope, TaskFields(title="late", due_date=date(2026, 12, 1)))
    undated = store.create(scope, TaskFields(title="undated", urgency=Urgency.CRITICAL))
    soon = store.create(scope, TaskFields(title="soon", due_date=date(2026, 1, 1), urgency=Urgency.LOW))
    started = store.create(scope, TaskFields(title="started", status=TaskStatus.IN_PROGRESS))

    ordered = [task.id for task in store.list(scope)]
    critical = store.list(scope, TaskFilter(urgency=Urgency.CRITICAL))
    in_progress = store.list(scope, TaskFilter(status=TaskStatus.IN_PROGRESS))

    assert ordered == [soon.id, late.id, undated.id, started.id]
    assert [task.id for task in critical] == [undated.id]
    assert [task.id for task in in_progress] == [started.id]
