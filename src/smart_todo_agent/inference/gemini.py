"""Remote hosted backend speaking the Gemini ``generateContent`` format."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from smart_todo_agent.core.types import Message, Role, ToolCall
from smart_todo_agent.errors import ApiKeyNotConfiguredError, MalformedResponseError
from smart_todo_agent.inference.base import InferenceClient, decode_arguments, finish_message


class RemoteInferenceClient(InferenceClient):
    backend = "remote"

    def __init__(self, *, api_key: str | None, function_calling_mode: str = "ANY", **kwargs: Any) -> None:
        if not api_key:
            raise ApiKeyNotConfiguredError(
                "remote backend selected but no API key is configured "
                "(set SMART_TODO_REMOTE_API_KEY or GEMINI_API_KEY)"
            )
        super().__init__(**kwargs)
        self._api_key = api_key
        self.function_calling_mode = function_calling_mode

    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _headers(self) -> dict[str, str]:
        return {**super()._headers(), "Authorization": f"Bearer {self._api_key}"}

    def _build_payload(
        self,
        conversation: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system_prompt: str,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": to_contents(conversation),
        }
        if tools:
            payload["tools"] = [{"functionDeclarations": list(tools)}]
            payload["toolConfig"] = {"functionCallingConfig": {"mode": self.function_calling_mode}}
        return payload

    def _parse(self, body: Any) -> Message:
        candidates = body.get("candidates") if isinstance(body, dict) else None
        if not isinstance(candidates, list) or not candidates:
            reason = ""
            if isinstance(body, dict):
                feedback = body.get("promptFeedback") or {}
                if isinstance(feedback, dict) and feedback.get("blockReason"):
                    reason = f" (blocked: {feedback['blockReason']})"
            raise MalformedResponseError(f"response has no candidates{reason}")

        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        texts: list[str] = []
        calls: list[ToolCall] = []
        for part in parts or []:
            if not isinstance(part, dict) or part.get("thought"):
                continue
            if isinstance(part.get("text"), str):
                texts.append(part["text"])
            function_call = part.get("functionCall")
            if isinstance(function_call, dict):
                name = function_call.get("name")
                if not isinstance(name, str) or not name:
                    continue
                calls.append(decode_arguments(name, function_call.get("args"), function_call.get("id")))
        return finish_message("".join(texts), calls)


def to_contents(conversation: Sequence[Message]) -> list[dict[str, Any]]:
    """Serialize the conversation; consecutive tool results share one ``user`` turn."""
    contents: list[dict[str, Any]] = []
    tool_turn: dict[str, Any] | None = None
    for message in conversation:
        if message.role is Role.TOOL:
            result = message.tool_result
            assert result is not None
            part = {"functionResponse": {"name": result.name, "id": result.call_id, "response": result.to_wire()}}
            if tool_turn is None:
                tool_turn = {"role": "user", "parts": []}
                contents.append(tool_turn)
            tool_turn["parts"].append(part)
            continue

        tool_turn = None
        if message.role is Role.USER:
            contents.append({"role": "user", "parts": [{"text": message.content or ""}]})
            continue
        parts: list[dict[str, Any]] = []
        if message.content:
            parts.append({"text": message.content})
        for call in message.tool_calls:
            parts.append({"functionCall": {"name": call.name, "args": call.arguments, "id": call.id}})
        contents.append({"role": "model", "parts": parts})
    return contents
