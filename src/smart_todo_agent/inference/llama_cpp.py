"""Local backend for a llama.cpp server's OpenAI-compatible chat endpoint."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from smart_todo_agent.core.types import Message, Role, ToolCall
from smart_todo_agent.errors import MalformedResponseError
from smart_todo_agent.inference.base import InferenceClient, decode_arguments, finish_message


class LocalInferenceClient(InferenceClient):
    backend = "local"

    def __init__(
        self,
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        tool_choice: str = "auto",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.tool_choice = tool_choice

    def endpoint(self) -> str:
        return f"{self.base_url}/v1/chat/completions"

    def _build_payload(
        self,
        conversation: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system_prompt: str,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *to_chat_messages(conversation)],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "cache_prompt": True,
        }
        if tools:
            payload["tools"] = [{"type": "function", "function": declaration} for declaration in tools]
            payload["tool_choice"] = self.tool_choice
        return payload

    def _parse(self, body: Any) -> Message:
        choices = body.get("choices") if isinstance(body, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedResponseError("response has no choices")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise MalformedResponseError("choice has no message")

        calls: list[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") if isinstance(raw, dict) else None
            if not isinstance(function, dict):
                continue
            name = function.get("name")
            if not isinstance(name, str) or not name:
                continue
            calls.append(decode_arguments(name, function.get("arguments"), raw.get("id")))

        content = message.get("content")
        return finish_message(content if isinstance(content, str) else None, calls)


def to_chat_messages(conversation: Sequence[Message]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    for message in conversation:
        if message.role is Role.USER:
            messages.append({"role": "user", "content": message.content or ""})
        elif message.role is Role.MODEL:
            entry: dict[str, Any] = {"role": "assistant", "content": message.content or ""}
            if message.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.arguments, ensure_ascii=False)},
                    }
                    for call in message.tool_calls
                ]
            messages.append(entry)
        else:
            result = message.tool_result
            assert result is not None
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": result.call_id,
                    "name": result.name,
                    "content": json.dumps(result.to_wire(), ensure_ascii=False, default=str),
                }
            )
    return messages
