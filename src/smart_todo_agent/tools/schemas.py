"""Argument models for the task tools."""

from __future__ import annotations

import json
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

from smart_todo_agent.domain.ports import Recurrence, TaskStatus, Urgency


class ToolName(str, Enum):
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    SET_STATUS = "set_status"
    COMPLETE_TASK = "complete_task"
    ASSIGN_TASK = "assign_task"
    LINK_PREREQUISITE = "link_prerequisite"
    UNLINK_PREREQUISITE = "unlink_prerequisite"
    DELETE_TASK = "delete_task"
    GET_TASK = "get_task"
    LIST_TASKS = "list_tasks"
    RECORD_PLAN = "record_plan"
    COMPLETE_SESSION = "complete_session"


COMPLETION_TOOL = ToolName.COMPLETE_SESSION


class ToolInput(BaseModel):
    model_config = ConfigDict(extra="forbid")


class OpenStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"


class CreateTaskInput(ToolInput):
    title: str = Field(..., min_length=1, description="Task title")
    description: str | None = Field(default=None, description="Longer description")
    urgency: Urgency | None = Field(default=None, description="low, normal, high or critical")
    due_date: date | None = Field(default=None, description="ISO8601 due date (YYYY-MM-DD)")
    recurrence: Recurrence | None = Field(default=None, description="none, daily, weekly, monthly or yearly")
    status: OpenStatus | None = Field(default=None, description="Initial status: todo or in_progress")
    prerequisite_ids: list[PositiveInt] = Field(default_factory=list, description="Ids of tasks that must finish first")


class UpdateTaskInput(ToolInput):
    task_id: PositiveInt = Field(..., description="Id of the task to update")
    title: str | None = Field(default=None, min_length=1, description="New title")
    description: str | None = Field(default=None, description="New description")
    urgency: Urgency | None = Field(default=None, description="New urgency")
    due_date: date | None = Field(default=None, description="New ISO8601 due date")
    recurrence: Recurrence | None = Field(default=None, description="New recurrence")

    @model_validator(mode="after")
    def _require_change(self) -> UpdateTaskInput:
        if not self.model_fields_set - {"task_id"}:
            raise ValueError("provide at least one field to update")
        return self


class SetStatusInput(ToolInput):
    task_id: PositiveInt = Field(..., description="Id of the task")
    status: TaskStatus = Field(..., description="todo, in_progress or done")


class TaskIdInput(ToolInput):
    task_id: PositiveInt = Field(..., description="Id of the task")


class AssignTaskInput(ToolInput):
    task_id: PositiveInt = Field(..., description="Id of the task")
    user_id: PositiveInt | None = Field(default=None, description="Assign to this user")
    group_id: PositiveInt | None = Field(default=None, description="Assign to this group")


class PrerequisiteInput(ToolInput):
    blocked_id: PositiveInt = Field(..., description="Task that waits on the prerequisite")
    prereq_id: PositiveInt = Field(..., description="Task that must be completed first")


class ListTasksInput(ToolInput):
    status: TaskStatus | None = Field(default=None, description="Only tasks with this status")
    urgency: Urgency | None = Field(default=None, description="Only tasks with this urgency")
    assignee_id: PositiveInt | None = Field(default=None, description="Only tasks assigned to this user")
    include_done: bool = Field(default=False, description="Include completed tasks")


class RecordPlanInput(ToolInput):
    plan: str | None = Field(default=None, description="Plan summary (required if no steps)")
    steps: list[str] = Field(default_factory=list, description="Ordered steps")

    @model_validator(mode="after")
    def _require_content(self) -> RecordPlanInput:
        self.steps = [step.strip() for step in self.steps if step.strip()]
        if not (self.plan and self.plan.strip()) and not self.steps:
            raise ValueError("provide a non-empty plan summary or at least one textual step")
        return self


class CompleteSessionInput(ToolInput):
    """Unknown arguments are ignored and any summary is rendered as text."""

    model_config = ConfigDict(extra="ignore")

    summary: str | None = Field(default=None, description="Short summary of what was done")

    @field_validator("summary", mode="before")
    @classmethod
    def _render_summary(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False, default=str)
