"""Core session types and the session state machine."""

from .state_machine import InvalidTransitionError, StateMachine, transition
from .types import Message, Outcome, Role, SessionResult, SessionState, TerminalReason, ToolCall, ToolResult

__all__ = [
    "InvalidTransitionError",
    "Message",
    "Outcome",
    "Role",
    "SessionResult",
    "SessionState",
    "StateMachine",
    "TerminalReason",
    "ToolCall",
    "ToolResult",
    "transition",
]
