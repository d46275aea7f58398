"""Validate and apply one model tool call against the task domain."""

from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic import ValidationError

from smart_todo_agent.core.types import ToolCall, ToolResult
from smart_todo_agent.domain.ports import DomainError, DomainUnavailableError, Scope, TaskStore
from smart_todo_agent.tools.builtin import build_task_registry
from smart_todo_agent.tools.registry import ToolRegistry
from smart_todo_agent.tools.schemas import COMPLETION_TOOL, ToolName

_KNOWN_NAMES = frozenset(item.value for item in ToolName)


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic errors as ``field: message`` pairs."""
    parts: list[str] = []
    for item in error.errors(include_url=False):
        location = ".".join(str(piece) for piece in item["loc"])
        message = item["msg"]
        if item["type"] == "missing":
            message = "required"
        elif item["type"] == "extra_forbidden":
            message = "unknown argument"
        parts.append(f"{location}: {message}" if location else message)
    return "invalid arguments: " + "; ".join(parts)


class ToolExecutor:
    """Turns every tool call into exactly one ``ToolResult``; ``execute`` never raises."""

    def __init__(self, store: TaskStore, registry: ToolRegistry | None = None) -> None:
        self._store = store
        self._registry = registry or build_task_registry(store)

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def declarations(self) -> list[dict[str, Any]]:
        return self._registry.declarations()

    @staticmethod
    def is_completion(call: ToolCall) -> bool:
        return call.name == COMPLETION_TOOL.value

    def execute(self, scope: Scope, call: ToolCall) -> ToolResult:
        completion = self.is_completion(call)
        if call.argument_error is not None and not completion:
            return ToolResult.failure(call, f"invalid arguments: {call.argument_error}")

        descriptor = self._registry.get(call.name) if call.name in _KNOWN_NAMES else None
        if descriptor is None:
            logger.warning("tool.call.unknown name={}", call.name)
            return ToolResult.failure(call, f"unknown tool: {call.name}")

        arguments = call.arguments if call.argument_error is None else {}
        try:
            params = descriptor.input_model.model_validate(arguments)
        except ValidationError as exc:
            if not completion:
                return ToolResult.failure(call, format_validation_error(exc))
            # Only an unreachable store may stop the completion signal.
            logger.warning("tool.call.arguments_ignored name={} error={}", call.name, format_validation_error(exc))
            params = descriptor.input_model()

        try:
            payload = descriptor.handler(scope, params)
        except DomainError as exc:
            return ToolResult.failure(call, str(exc))
        except DomainUnavailableError as exc:
            logger.error("tool.call.unavailable name={} error={}", call.name, exc)
            return ToolResult.failure(call, f"task store unavailable: {exc}", fatal=True)
        except Exception as exc:
            logger.exception("tool.call.internal_error name={}", call.name)
            return ToolResult.failure(call, f"internal error: {exc}")
        return ToolResult.success(call, payload)
