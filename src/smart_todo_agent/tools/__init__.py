"""Model-callable tools over the task domain."""

from .builtin import build_task_registry
from .executor import ToolExecutor
from .registry import ToolDescriptor, ToolRegistry
from .schemas import COMPLETION_TOOL, ToolName

__all__ = [
    "COMPLETION_TOOL",
    "ToolDescriptor",
    "ToolExecutor",
    "ToolName",
    "ToolRegistry",
    "build_task_registry",
]
