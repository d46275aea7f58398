"""Interchangeable inference backends behind one ``InferenceClient`` contract."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from smart_todo_agent.config import SessionConfig, Settings
from smart_todo_agent.errors import ConfigurationError
from smart_todo_agent.inference.base import InferenceClient, RetryPolicy
from smart_todo_agent.inference.gemini import RemoteInferenceClient
from smart_todo_agent.inference.llama_cpp import LocalInferenceClient

ClientFactory = Callable[[SessionConfig, Settings], InferenceClient]


def build_inference_client(
    config: SessionConfig,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> InferenceClient:
    """Create the client for ``config.backend``.

    Raises:
        ApiKeyNotConfiguredError: remote backend without a credential.
        ConfigurationError: unknown backend.
    """
    retry = RetryPolicy(
        attempts=config.retry_attempts,
        backoff=config.retry_backoff,
        backoff_max=config.retry_backoff_max,
    )
    if config.backend == "remote":
        return RemoteInferenceClient(
            api_key=settings.resolved_api_key,
            function_calling_mode=settings.remote_function_calling_mode,
            base_url=settings.remote_base_url,
            model=settings.remote_model,
            timeout=config.request_timeout,
            retry=retry,
            transport=transport,
        )
    if config.backend == "local":
        return LocalInferenceClient(
            base_url=settings.local_base_url,
            model=settings.local_model,
            timeout=config.request_timeout,
            retry=retry,
            transport=transport,
            temperature=settings.local_temperature,
            max_tokens=settings.local_max_tokens,
            tool_choice=settings.local_tool_choice,
        )
    raise ConfigurationError(f"unknown backend: {config.backend}")


__all__ = [
    "ClientFactory",
    "InferenceClient",
    "LocalInferenceClient",
    "RemoteInferenceClient",
    "RetryPolicy",
    "build_inference_client",
]
