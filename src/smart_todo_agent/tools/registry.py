"""Registry of model-callable task tools."""

from __future__ import annotations

import builtins
import json
import time
from collections.abc import Callable
from copy import deepcopy
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import BaseModel

from smart_todo_agent.domain.ports import Scope
from smart_todo_agent.logging_utils import shorten

ToolHandler = Callable[[Scope, Any], Any]

# Validation-only keywords; pydantic enforces them when the call arrives.
_DROPPED_KEYS = frozenset({"title", "default", "additionalProperties", "exclusiveMinimum", "minLength", "format"})


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata and runtime handle."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def parameters(self) -> dict[str, Any]:
        return _clean_schema(self.input_model.model_json_schema())

    def declaration(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters()}


class ToolRegistry:
    """Registry for the task tools exposed to the model."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise ValueError(f"Duplicate tool name: {descriptor.name}")
        self._tools[descriptor.name] = ToolDescriptor(
            name=descriptor.name,
            description=descriptor.description,
            input_model=descriptor.input_model,
            handler=self._wrap_handler(descriptor.name, descriptor.handler),
        )

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> builtins.list[str]:
        return list(self._tools)

    def descriptors(self) -> builtins.list[ToolDescriptor]:
        return list(self._tools.values())

    def declarations(self) -> builtins.list[dict[str, Any]]:
        """Backend-neutral tool schema: name, description and JSON-schema parameters."""
        return [descriptor.declaration() for descriptor in self.descriptors()]

    def _log_tool_call(self, name: str, arguments: dict[str, Any]) -> None:
        params: list[str] = []
        for key, value in arguments.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False, default=str)
            except TypeError:
                rendered = repr(value)
            value = shorten(rendered, width=30, placeholder="...")
            if value.startswith('"') and not value.endswith('"'):
                value = value + '"'
            if value.startswith("{") and not value.endswith("}"):
                value = value + "}"
            if value.startswith("[") and not value.endswith("]"):
                value = value + "]"
            params.append(f"{key}={value}")
        logger.info("tool.call.start name={} {{ {} }}", name, ", ".join(params))

    def _wrap_handler(self, name: str, handler: ToolHandler) -> ToolHandler:
        def _handler(scope: Scope, arguments: BaseModel) -> Any:
            self._log_tool_call(name, arguments.model_dump(exclude_unset=True, mode="json"))

            start = time.monotonic()
            try:
                return handler(scope, arguments)
            except Exception:
                logger.opt(exception=True).debug("tool.call.error name={}", name)
                raise
            finally:
                duration = time.monotonic() - start
                logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)

        return _handler


def _clean_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Inline ``$defs`` and reduce the pydantic schema to the subset both backends accept."""
    schema = deepcopy(schema)
    definitions = schema.pop("$defs", {})
    return _simplify(schema, definitions)


def _simplify(node: Any, definitions: dict[str, Any]) -> Any:
    if isinstance(node, list):
        return [_simplify(item, definitions) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        target = definitions[node["$ref"].rsplit("/", 1)[-1]]
        merged = {**target, **{key: value for key, value in node.items() if key != "$ref"}}
        return _simplify(merged, definitions)

    variants = node.get("anyOf")
    if isinstance(variants, list):
        non_null = [item for item in variants if item.get("type") != "null"]
        if len(non_null) == 1:
            rest = {key: value for key, value in node.items() if key != "anyOf"}
            return _simplify({**non_null[0], **rest}, definitions)

    cleaned: dict[str, Any] = {}
    for key, value in node.items():
        if key in _DROPPED_KEYS:
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {name: _simplify(prop, definitions) for name, prop in value.items()}
            continue
        cleaned[key] = _simplify(value, definitions)
    return cleaned
