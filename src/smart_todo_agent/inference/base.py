"""Shared request/response contract for inference backends.

A client turns the conversation plus the declared tool schema into one HTTP
request and parses the reply into a single model ``Message``. Transport
concerns live here: per-attempt timeout, retry with capped exponential
backoff, and classification of HTTP failures into the ``InferenceError``
hierarchy.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, ClassVar

import httpx
from loguru import logger

from smart_todo_agent.core.types import Message, ToolCall, new_call_id
from smart_todo_agent.errors import (
    BackendAuthenticationError,
    FatalInferenceError,
    MalformedResponseError,
    TransientInferenceError,
)
from smart_todo_agent.logging_utils import shorten

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """``attempts`` counts retries after the first request."""

    attempts: int = 2
    backoff: float = 0.5
    backoff_max: float = 8.0

    def delay(self, retry: int) -> float:
        return min(self.backoff * (2 ** (retry - 1)), self.backoff_max)


class InferenceClient(ABC):
    """One backend variant; selected once per session."""

    backend: ClassVar[str]

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        timeout: float,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._timeout = timeout
        self._retry = retry or RetryPolicy()
        self._sleep = sleep
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    async def __aenter__(self) -> InferenceClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        conversation: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system_prompt: str,
    ) -> Message:
        """Return the next model message.

        Raises:
            FatalInferenceError: non-retryable failure, or retries exhausted.
            MalformedResponseError: the reply held nothing usable.
        """
        payload = self._build_payload(conversation, tools, system_prompt)
        total = self._retry.attempts + 1
        last_error: TransientInferenceError | None = None

        for attempt in range(1, total + 1):
            logger.info(
                "inference.request backend={} model={} attempt={} messages={}",
                self.backend,
                self.model,
                attempt,
                len(conversation),
            )
            try:
                body = await self._request_once(payload)
            except TransientInferenceError as exc:
                last_error = exc
                if attempt == total:
                    break
                delay = self._retry.delay(attempt)
                logger.warning(
                    "inference.retry backend={} attempt={} delay={:.2f}s error={}",
                    self.backend,
                    attempt,
                    delay,
                    exc,
                )
                await self._sleep(delay)
                continue
            return self._parse(body)

        logger.error("inference.error backend={} attempts={} error={}", self.backend, total, last_error)
        raise FatalInferenceError(f"transient_error: {last_error} after {total} attempts") from last_error

    async def _request_once(self, payload: dict[str, Any]) -> Any:
        try:
            async with asyncio.timeout(self._timeout):
                response = await self._client.post(self.endpoint(), json=payload, headers=self._headers())
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise TransientInferenceError(f"timeout: no response within {self._timeout:g}s") from exc
        except httpx.TransportError as exc:
            raise TransientInferenceError(f"connection error: {exc}") from exc

        self._check_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError("response body is not valid JSON") from exc

    def _check_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if response.is_success:
            return
        detail = shorten(response.text.strip(), width=200)
        if status in (401, 403):
            raise BackendAuthenticationError(f"authentication failed: HTTP {status} {detail}".rstrip())
        if status == 429 or status >= 500:
            raise TransientInferenceError(f"HTTP {status}")
        raise FatalInferenceError(f"HTTP {status} {detail}".rstrip())

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def endpoint(self) -> str: ...

    @abstractmethod
    def _build_payload(
        self,
        conversation: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        system_prompt: str,
    ) -> dict[str, Any]: ...

    @abstractmethod
    def _parse(self, body: Any) -> Message: ...


def decode_arguments(name: str, raw: Any, call_id: str | None) -> ToolCall:
    """Build a ``ToolCall`` from wire arguments, keeping undecodable ones as an argument error."""
    call_id = call_id or new_call_id()
    if raw is None or raw == "":
        return ToolCall(name=name, arguments={}, id=call_id)
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            return ToolCall(name=name, id=call_id, argument_error=f"arguments are not valid JSON ({exc.msg})")
    if not isinstance(raw, dict):
        return ToolCall(name=name, id=call_id, argument_error="arguments must be a JSON object")
    return ToolCall(name=name, arguments=raw, id=call_id)


def finish_message(text: str | None, calls: list[ToolCall]) -> Message:
    text = text if text and text.strip() else None
    if text is None and not calls:
        raise MalformedResponseError("response contained neither text nor a tool call")
    return Message.model(text, tuple(_unique_ids(calls)))


def _unique_ids(calls: list[ToolCall]) -> list[ToolCall]:
    """Results pair with calls by id, so a repeated id within one reply gets a fresh one."""
    seen: set[str] = set()
    unique: list[ToolCall] = []
    for call in calls:
        if call.id in seen:
            logger.warning("inference.duplicate_call_id name={} id={}", call.name, call.id)
            call = replace(call, id=new_call_id())
        seen.add(call.id)
        unique.append(call)
    return unique
