from __future__ import annotations

import pytest

from smart_todo_agent.config import Settings
from smart_todo_agent.domain import InMemoryTaskStore, Scope


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "SMART_TODO_REMOTE_API_KEY", "SMART_TODO_BACKEND"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def scope() -> Scope:
    return Scope(user_id=1)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, remote_api_key="test-key", retry_backoff=0.0)
