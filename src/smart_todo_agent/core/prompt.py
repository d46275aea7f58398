"""Prompt texts used by the conversation driver."""

from __future__ import annotations

from smart_todo_agent.domain.ports import Scope

SYSTEM_PROMPT = """\
You are a task management assistant. You manage the user's tasks only by calling tools.

Rules:
- Use the provided tools for every change; never claim a change you did not make with a tool.
- Task ids come from tool results. Call list_tasks or get_task when you need an id you do not have.
- If a tool returns an error, read the message, fix the arguments and try again.
- You may call several tools in one reply. They run in the order you emit them.
- When the request is fully handled, call complete_session with a short summary. It must be your final call.
"""

REPROMPT_MESSAGE = (
    "No tool was called. Continue with the next tool call, or call complete_session if the request is handled."
)

RECOVERY_MESSAGE = (
    "Your previous reply could not be understood. Reply again with valid tool calls, "
    "or call complete_session if the request is handled."
)


def build_system_prompt(scope: Scope) -> str:
    preferences = (scope.prompt_preferences or "").strip()
    if not preferences:
        return SYSTEM_PROMPT
    return f"{SYSTEM_PROMPT}\nUser preferences:\n{preferences}\n"
