"""Built-in task tools backed by a ``TaskStore``."""

from __future__ import annotations

from typing import Any

from smart_todo_agent.domain.ports import Scope, TaskFields, TaskFilter, TaskStatus, TaskStore
from smart_todo_agent.tools.registry import ToolDescriptor, ToolRegistry
from smart_todo_agent.tools.schemas import (
    AssignTaskInput,
    CompleteSessionInput,
    CreateTaskInput,
    ListTasksInput,
    PrerequisiteInput,
    RecordPlanInput,
    SetStatusInput,
    TaskIdInput,
    ToolName,
    UpdateTaskInput,
)


def build_task_registry(store: TaskStore) -> ToolRegistry:
    """Create a registry with every task tool plus the completion signal."""
    registry = ToolRegistry()

    def register(name: ToolName, description: str, input_model: type, handler: Any) -> None:
        registry.register(
            ToolDescriptor(name=name.value, description=description, input_model=input_model, handler=handler)
        )

    def with_open_tasks(scope: Scope, payload: dict[str, Any]) -> dict[str, Any]:
        """Attach a compact view of the open tasks so the model keeps ids between rounds."""
        tasks = store.list(scope, TaskFilter(include_done=False))
        preview = [{"id": task.id, "title": task.title, "status": task.status.value} for task in tasks]
        return {**payload, "open_tasks": preview}

    def create_task(scope: Scope, params: CreateTaskInput) -> dict[str, Any]:
        task = store.create(
            scope,
            TaskFields(
                title=params.title,
                description=params.description,
                urgency=params.urgency,
                due_date=params.due_date,
                recurrence=params.recurrence,
                status=TaskStatus(params.status.value) if params.status else None,
                prerequisite_ids=list(params.prerequisite_ids),
            ),
        )
        return with_open_tasks(scope, task.to_payload())

    def update_task(scope: Scope, params: UpdateTaskInput) -> dict[str, Any]:
        fields = TaskFields(
            title=params.title,
            description=params.description,
            urgency=params.urgency,
            due_date=params.due_date,
            recurrence=params.recurrence,
        )
        return with_open_tasks(scope, store.update(scope, params.task_id, fields).to_payload())

    def set_status(scope: Scope, params: SetStatusInput) -> dict[str, Any]:
        return with_open_tasks(scope, store.set_status(scope, params.task_id, params.status).to_payload())

    def complete_task(scope: Scope, params: TaskIdInput) -> dict[str, Any]:
        return with_open_tasks(scope, store.set_status(scope, params.task_id, TaskStatus.DONE).to_payload())

    def assign_task(scope: Scope, params: AssignTaskInput) -> dict[str, Any]:
        task = store.assign(scope, params.task_id, user_id=params.user_id, group_id=params.group_id)
        return with_open_tasks(scope, task.to_payload())

    def link_prerequisite(scope: Scope, params: PrerequisiteInput) -> dict[str, Any]:
        return with_open_tasks(scope, store.link_prerequisite(scope, params.blocked_id, params.prereq_id).to_payload())

    def unlink_prerequisite(scope: Scope, params: PrerequisiteInput) -> dict[str, Any]:
        task = store.unlink_prerequisite(scope, params.blocked_id, params.prereq_id)
        return with_open_tasks(scope, task.to_payload())

    def delete_task(scope: Scope, params: TaskIdInput) -> dict[str, Any]:
        task = store.delete(scope, params.task_id)
        return with_open_tasks(scope, {"deleted": task.id, "title": task.title})

    def get_task(scope: Scope, params: TaskIdInput) -> dict[str, Any]:
        return store.get(scope, params.task_id).to_payload()

    def list_tasks(scope: Scope, params: ListTasksInput) -> dict[str, Any]:
        tasks = store.list(
            scope,
            TaskFilter(
                status=params.status,
                urgency=params.urgency,
                assignee_id=params.assignee_id,
                include_done=params.include_done,
            ),
        )
        return {"count": len(tasks), "tasks": [task.to_payload() for task in tasks]}

    def record_plan(scope: Scope, params: RecordPlanInput) -> dict[str, Any]:
        return {"recorded": True, "plan": params.plan, "steps": params.steps}

    def complete_session(scope: Scope, params: CompleteSessionInput) -> dict[str, Any]:
        store.ping()
        return with_open_tasks(scope, {"completed": True, "summary": params.summary})

    register(
        ToolName.CREATE_TASK,
        "Create a task. Returns the new task with its id.",
        CreateTaskInput,
        create_task,
    )
    register(
        ToolName.UPDATE_TASK,
        "Change title, description, urgency, due date or recurrence of a task.",
        UpdateTaskInput,
        update_task,
    )
    register(
        ToolName.SET_STATUS,
        "Set the status of a task. A task can only be done when all its prerequisites are done.",
        SetStatusInput,
        set_status,
    )
    register(ToolName.COMPLETE_TASK, "Mark a task as done.", TaskIdInput, complete_task)
    register(
        ToolName.ASSIGN_TASK,
        "Assign a task to a user or to a group, never both. Omit both to unassign.",
        AssignTaskInput,
        assign_task,
    )
    register(
        ToolName.LINK_PREREQUISITE,
        "Make prereq_id a prerequisite of blocked_id.",
        PrerequisiteInput,
        link_prerequisite,
    )
    register(
        ToolName.UNLINK_PREREQUISITE,
        "Remove prereq_id from the prerequisites of blocked_id.",
        PrerequisiteInput,
        unlink_prerequisite,
    )
    register(ToolName.DELETE_TASK, "Delete a task.", TaskIdInput, delete_task)
    register(ToolName.GET_TASK, "Fetch one task by id.", TaskIdInput, get_task)
    register(
        ToolName.LIST_TASKS,
        "List tasks, optionally filtered. Done tasks are hidden unless include_done is true.",
        ListTasksInput,
        list_tasks,
    )
    register(
        ToolName.RECORD_PLAN,
        "Write down a plan before acting on a larger request. Has no effect on tasks.",
        RecordPlanInput,
        record_plan,
    )
    register(
        ToolName.COMPLETE_SESSION,
        "Finish the session. Call this last, once the request is fully handled.",
        CompleteSessionInput,
        complete_session,
    )
    return registry
