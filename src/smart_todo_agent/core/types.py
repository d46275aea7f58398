"""Conversation value types shared by the driver, clients and executor."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    TOOL = "tool"


class Outcome(str, Enum):
    OK = "ok"
    ERROR = "error"


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    COMPLETED = "completed"
    FAILED = "failed"
    EXHAUSTED = "exhausted"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.FAILED, SessionState.EXHAUSTED})


class TerminalReason(str, Enum):
    COMPLETED = "completed"
    ROUND_BUDGET_EXHAUSTED = "round_budget_exhausted"
    FATAL_ERROR = "fatal_error"


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True)
class ToolCall:
    """One operation requested by the model.

    ``argument_error`` is set when the backend delivered arguments that could
    not be decoded; the call is kept so the model still receives a result.
    """

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_call_id)
    argument_error: str | None = None


@dataclass(frozen=True)
class ToolResult:
    call_id: str
    name: str
    outcome: Outcome
    payload: Any
    # Domain collaborator unreachable; the driver fails the session.
    fatal: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @classmethod
    def success(cls, call: ToolCall, payload: Any) -> ToolResult:
        return cls(call_id=call.id, name=call.name, outcome=Outcome.OK, payload=payload)

    @classmethod
    def failure(cls, call: ToolCall, message: str, *, fatal: bool = False) -> ToolResult:
        return cls(call_id=call.id, name=call.name, outcome=Outcome.ERROR, payload=message, fatal=fatal)

    def to_wire(self) -> dict[str, Any]:
        return {"status": self.outcome.value, "result" if self.ok else "error": self.payload}


@dataclass(frozen=True)
class Message:
    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_result: ToolResult | None = None

    def __post_init__(self) -> None:
        if self.tool_calls and self.role is not Role.MODEL:
            raise ValueError("only model messages may carry tool calls")
        if (self.tool_result is not None) != (self.role is Role.TOOL):
            raise ValueError("tool messages carry exactly one tool result")

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def model(cls, content: str | None = None, tool_calls: tuple[ToolCall, ...] = ()) -> Message:
        return cls(role=Role.MODEL, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, result: ToolResult) -> Message:
        return cls(role=Role.TOOL, tool_result=result)

    @property
    def has_text(self) -> bool:
        return bool(self.content and self.content.strip())


@dataclass(frozen=True)
class SessionResult:
    """Immutable summary of one finished session."""

    session_id: str
    state: SessionState
    reason: TerminalReason
    conversation: tuple[Message, ...]
    rounds: int
    error: str | None = None
    events: tuple[tuple[str, dict[str, Any]], ...] = ()

    @property
    def completed(self) -> bool:
        return self.reason is TerminalReason.COMPLETED

    def tool_results(self) -> list[ToolResult]:
        return [message.tool_result for message in self.conversation if message.tool_result is not None]
