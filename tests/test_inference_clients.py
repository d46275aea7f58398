from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from smart_todo_agent.config import SessionConfig, Settings
from smart_todo_agent.core.types import Message, ToolCall, ToolResult
from smart_todo_agent.errors import (
    ApiKeyNotConfiguredError,
    BackendAuthenticationError,
    FatalInferenceError,
    MalformedResponseError,
)
from smart_todo_agent.inference import (
    LocalInferenceClient,
    RemoteInferenceClient,
    RetryPolicy,
    build_inference_client,
)

TOOLS = [{"name": "create_task", "description": "Create a task.", "parameters": {"type": "object"}}]


class Recorder:
    def __init__(self, responses: list[httpx.Response | Exception]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def body(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


async def _no_sleep(_: float) -> None:
    return None


def _conversation() -> list[Message]:
    call = ToolCall("create_task", {"title": "Buy milk"}, id="call_1")
    return [
        Message.user("add milk"),
        Message.model("On it.", (call,)),
        Message.tool(ToolResult.success(call, {"id": 1, "title": "Buy milk"})),
    ]


def _local(recorder: Recorder, *, attempts: int = 2, tool_choice: str = "auto") -> LocalInferenceClient:
    return LocalInferenceClient(
        base_url="http://llm.local/",
        model="tiny",
        timeout=5,
        retry=RetryPolicy(attempts=attempts, backoff=0.1, backoff_max=1.0),
        transport=httpx.MockTransport(recorder),
        sleep=_no_sleep,
        tool_choice=tool_choice,
    )


def _remote(recorder: Recorder, *, attempts: int = 2, sleep: Callable[[float], Any] = _no_sleep) -> RemoteInferenceClient:
    return RemoteInferenceClient(
        api_key="secret",
        base_url="https://llm.remote/v1beta",
        model="gemini-test",
        timeout=5,
        retry=RetryPolicy(attempts=attempts, backoff=0.5, backoff_max=1.0),
        transport=httpx.MockTransport(recorder),
        sleep=sleep,
    )


def _chat_reply(message: dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"index": 0, "message": message}]})


def test_retry_delay_doubles_up_to_the_cap() -> None:
    policy = RetryPolicy(attempts=5, backoff=0.5, backoff_max=3.0)

    assert [policy.delay(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 3.0, 3.0]


@pytest.mark.asyncio
async def test_local_request_shape() -> None:
    recorder = Recorder([_chat_reply({"role": "assistant", "content": "done"})])

    async with _local(recorder, tool_choice="required") as client:
        reply = await client.send(_conversation(), TOOLS, "be helpful")

    request = recorder.requests[0]
    assert str(request.url) == "http://llm.local/v1/chat/completions"
    assert "authorization" not in request.headers
    body = recorder.body()
    assert body["model"] == "tiny"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 2048
    assert body["cache_prompt"] is True
    assert body["tool_choice"] == "required"
    assert body["tools"] == [{"type": "function", "function": TOOLS[0]}]
    assert body["messages"][0] == {"role": "system", "content": "be helpful"}
    assert body["messages"][1] == {"role": "user", "content": "add milk"}
    assistant = body["messages"][2]
    assert assistant["role"] == "assistant"
    assert assistant["tool_calls"] == [
        {"id": "call_1", "type": "function", "function": {"name": "create_task", "arguments": '{"title": "Buy milk"}'}}
    ]
    tool = body["messages"][3]
    assert tool["role"] == "tool"
    assert tool["tool_call_id"] == "call_1"
    assert json.loads(tool["content"]) == {"status": "ok", "result": {"id": 1, "title": "Buy milk"}}
    assert reply == Message.model("done")


@pytest.mark.asyncio
async def test_local_parses_tool_calls() -> None:
    recorder = Recorder(
        [
            _chat_reply(
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {"id": "a", "type": "function", "function": {"name": "create_task", "arguments": '{"title": "x"}'}},
                        {"id": "b", "type": "function", "function": {"name": "list_tasks", "arguments": ""}},
                        {"id": "c", "type": "function", "function": {"name": "get_task", "arguments": "{oops"}},
                        {"id": "d", "type": "function", "function": {"arguments": "{}"}},
                    ],
                }
            )
        ]
    )

    async with _local(recorder) as client:
        reply = await client.send([Message.user("hi")], TOOLS, "sys")

    assert reply.content is None
    names = [call.name for call in reply.tool_calls]
    assert names == ["create_task", "list_tasks", "get_task"]
    create, listing, broken = reply.tool_calls
    assert create.arguments == {"title": "x"}
    assert create.id == "a"
    assert listing.arguments == {}
    assert broken.argument_error is not None
    assert broken.argument_error.startswith("arguments are not valid JSON")


@pytest.mark.asyncio
async def test_repeated_call_ids_in_one_reply_are_replaced() -> None:
    recorder = Recorder(
        [
            _chat_reply(
                {
                    "role": "assistant",
                    "tool_calls": [
                        {"id": "same", "function": {"name": "create_task", "arguments": '{"title": "a"}'}},
                        {"id": "same", "function": {"name": "create_task", "arguments": '{"title": "b"}'}},
                    ],
                }
            )
        ]
    )

    async with _local(recorder) as client:
        reply = await client.send([Message.user("hi")], TOOLS, "sys")

    first, second = reply.tool_calls
    assert first.id == "same"
    assert second.id != "same"
    assert second.arguments == {"title": "b"}


@pytest.mark.asyncio
async def test_local_non_object_arguments_are_kept_as_errors() -> None:
    recorder = Recorder(
        [_chat_reply({"role": "assistant", "tool_calls": [{"function": {"name": "get_task", "arguments": "[1]"}}]})]
    )

    async with _local(recorder) as client:
        reply = await client.send([Message.user("hi")], TOOLS, "sys")

    (call,) = reply.tool_calls
    assert call.argument_error == "arguments must be a JSON object"
    assert call.id.startswith("call_")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"choices": []},
        {"choices": [{"message": {"role": "assistant", "content": "   "}}]},
        {"choices": [{"message": {"role": "assistant", "tool_calls": [{"function": {"arguments": "{}"}}]}}]},
        ["not", "an", "object"],
    ],
)
async def test_local_unusable_bodies_are_malformed(body: Any) -> None:
    recorder = Recorder([httpx.Response(200, json=body)])

    async with _local(recorder) as client:
        with pytest.raises(MalformedResponseError):
            await client.send([Message.user("hi")], TOOLS, "sys")


@pytest.mark.asyncio
async def test_invalid_json_body_is_malformed_and_not_retried() -> None:
    recorder = Recorder([httpx.Response(200, content=b"<html>")])

    async with _local(recorder) as client:
        with pytest.raises(MalformedResponseError):
            await client.send([Message.user("hi")], TOOLS, "sys")
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_transient_errors_are_retried_then_succeed() -> None:
    delays: list[float] = []

    async def record_sleep(delay: float) -> None:
        delays.append(delay)

    recorder = Recorder(
        [
            httpx.ConnectError("refused"),
            httpx.Response(503, text="overloaded"),
            httpx.Response(200, json={"candidates": [{"content": {"role": "model", "parts": [{"text": "hi"}]}}]}),
        ]
    )

    async with _remote(recorder, attempts=2, sleep=record_sleep) as client:
        reply = await client.send([Message.user("hi")], TOOLS, "sys")

    assert reply == Message.model("hi")
    assert len(recorder.requests) == 3
    assert delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retries_exhausted_becomes_fatal_with_transient_diagnostic() -> None:
    recorder = Recorder([httpx.Response(500), httpx.Response(502), httpx.Response(429)])

    async with _remote(recorder, attempts=2) as client:
        with pytest.raises(FatalInferenceError) as exc_info:
            await client.send([Message.user("hi")], TOOLS, "sys")

    assert str(exc_info.value) == "transient_error: HTTP 429 after 3 attempts"
    assert len(recorder.requests) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_authentication_failure_is_not_retried(status: int) -> None:
    recorder = Recorder([httpx.Response(status, text="bad key")])

    async with _remote(recorder) as client:
        with pytest.raises(BackendAuthenticationError, match=f"HTTP {status}"):
            await client.send([Message.user("hi")], TOOLS, "sys")
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_other_client_errors_are_fatal() -> None:
    recorder = Recorder([httpx.Response(400, text="bad request")])

    async with _remote(recorder) as client:
        with pytest.raises(FatalInferenceError, match="HTTP 400 bad request"):
            await client.send([Message.user("hi")], TOOLS, "sys")
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_remote_request_shape() -> None:
    recorder = Recorder(
        [
            httpx.Response(
                200,
                json={
                    "candidates": [
                        {
                            "content": {
                                "role": "model",
                                "parts": [
                                    {"text": "thinking", "thought": True},
                                    {"functionCall": {"name": "create_task", "args": {"title": "x"}, "id": "g1"}},
                                    {"functionCall": {"args": {}}},
                                ],
                            }
                        }
                    ]
                },
            )
        ]
    )
    conversation = _conversation()
    second = ToolCall("list_tasks", {}, id="call_2")
    conversation[1] = Message.model("On it.", (conversation[1].tool_calls[0], second))
    conversation.append(Message.tool(ToolResult.failure(second, "boom")))

    async with _remote(recorder) as client:
        reply = await client.send(conversation, TOOLS, "be helpful")

    request = recorder.requests[0]
    assert str(request.url) == "https://llm.remote/v1beta/models/gemini-test:generateContent"
    assert request.headers["authorization"] == "Bearer secret"
    body = recorder.body()
    assert body["systemInstruction"] == {"parts": [{"text": "be helpful"}]}
    assert body["tools"] == [{"functionDeclarations": TOOLS}]
    assert body["toolConfig"] == {"functionCallingConfig": {"mode": "ANY"}}
    contents = body["contents"]
    assert contents[0] == {"role": "user", "parts": [{"text": "add milk"}]}
    assert contents[1]["role"] == "model"
    assert contents[1]["parts"][0] == {"text": "On it."}
    assert contents[1]["parts"][1] == {"functionCall": {"name": "create_task", "args": {"title": "Buy milk"}, "id": "call_1"}}
    assert contents[2]["role"] == "user"
    assert contents[2]["parts"] == [
        {
            "functionResponse": {
                "name": "create_task",
                "id": "call_1",
                "response": {"status": "ok", "result": {"id": 1, "title": "Buy milk"}},
            }
        },
        {"functionResponse": {"name": "list_tasks", "id": "call_2", "response": {"status": "error", "error": "boom"}}},
    ]
    assert len(contents) == 3

    assert reply.content is None
    assert reply.tool_calls == (ToolCall("create_task", {"title": "x"}, id="g1"),)


@pytest.mark.asyncio
async def test_remote_blocked_prompt_is_malformed() -> None:
    recorder = Recorder([httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})])

    async with _remote(recorder) as client:
        with pytest.raises(MalformedResponseError, match="blocked: SAFETY"):
            await client.send([Message.user("hi")], TOOLS, "sys")


def test_remote_client_requires_a_key() -> None:
    with pytest.raises(ApiKeyNotConfiguredError):
        RemoteInferenceClient(api_key=None, base_url="https://x", model="m", timeout=1)


def test_factory_selects_backend_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = Settings(_env_file=None, local_model="phi", remote_api_key=None)

    local = build_inference_client(SessionConfig(backend="local"), settings)
    assert isinstance(local, LocalInferenceClient)
    assert local.model == "phi"

    with pytest.raises(ApiKeyNotConfiguredError):
        build_inference_client(SessionConfig(backend="remote"), settings)

    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    settings = Settings(_env_file=None, remote_function_calling_mode="AUTO")
    remote = build_inference_client(SessionConfig(backend="remote", request_timeout=3), settings)
    assert isinstance(remote, RemoteInferenceClient)
    assert remote.model == settings.remote_model
    assert remote.function_calling_mode == "AUTO"
