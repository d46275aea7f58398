"""smart-todo-agent - manage tasks through an LLM agent session."""

from .config import SessionConfig, Settings
from .core.driver import ConversationDriver
from .core.types import Message, SessionResult, SessionState, TerminalReason, ToolCall, ToolResult
from .domain import InMemoryTaskStore, Scope
from .tools import ToolExecutor

__version__ = "0.1.0"

__all__ = [
    "ConversationDriver",
    "InMemoryTaskStore",
    "Message",
    "Scope",
    "SessionConfig",
    "SessionResult",
    "SessionState",
    "Settings",
    "TerminalReason",
    "ToolCall",
    "ToolExecutor",
    "ToolResult",
]
