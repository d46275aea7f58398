"""Application-level exception types for smart-todo-agent."""

from __future__ import annotations


class SmartTodoError(Exception):
    """Base exception for smart-todo-agent."""


class ConfigurationError(SmartTodoError):
    """Base exception for configuration and startup validation errors."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when the remote backend is selected but no credential is configured."""


class InferenceError(SmartTodoError):
    """Base exception for inference backend failures."""


class TransientInferenceError(InferenceError):
    """Timeout, connection failure or 5xx-class response; safe to retry."""


class FatalInferenceError(InferenceError):
    """Non-retryable backend failure, or transient failures with retries exhausted."""


class BackendAuthenticationError(FatalInferenceError):
    """Raised when the backend rejects the credential (401/403)."""


class MalformedResponseError(InferenceError):
    """Raised when a response body holds neither text nor a usable tool call."""
