"""Round loop that drives one agent session to a terminal state."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from smart_todo_agent.config import SessionConfig, Settings
from smart_todo_agent.core.prompt import RECOVERY_MESSAGE, REPROMPT_MESSAGE, build_system_prompt
from smart_todo_agent.core.state_machine import (
    BudgetExhausted,
    FatalErrorOccurred,
    ModelReplied,
    RoundFailed,
    SessionStarted,
    StateMachine,
    ToolsExecuted,
)
from smart_todo_agent.core.types import (
    Message,
    SessionResult,
    SessionState,
    TerminalReason,
    ToolCall,
    ToolResult,
)
from smart_todo_agent.domain.ports import Scope, TaskStore
from smart_todo_agent.errors import ConfigurationError, InferenceError, MalformedResponseError
from smart_todo_agent.inference import ClientFactory, InferenceClient, build_inference_client
from smart_todo_agent.logging_utils import session_context
from smart_todo_agent.tools.executor import ToolExecutor
from smart_todo_agent.tools.schemas import ToolName

SKIPPED_CALL_MESSAGE = "not executed: session already finished"

_REASONS = {
    SessionState.COMPLETED: TerminalReason.COMPLETED,
    SessionState.EXHAUSTED: TerminalReason.ROUND_BUDGET_EXHAUSTED,
    SessionState.FAILED: TerminalReason.FATAL_ERROR,
}


@dataclass
class Session:
    """Mutable state of one ``run`` call; discarded once the result is built."""

    scope: Scope
    config: SessionConfig
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    machine: StateMachine = field(default_factory=StateMachine)
    rounds: int = 0
    conversation: list[Message] = field(default_factory=list)
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    error: str | None = None

    def append(self, message: Message) -> None:
        self.conversation.append(message)

    def record(self, name: str, data: dict[str, Any]) -> None:
        self.events.append((name, data))
        logger.info("{} {}", name, " ".join(f"{key}={value}" for key, value in data.items()))

    def fail(self, error: str) -> None:
        if not self.machine.terminal:
            self.machine.apply(FatalErrorOccurred(error))
        self.error = error

    def result(self) -> SessionResult:
        return SessionResult(
            session_id=self.id,
            state=self.machine.state,
            reason=_REASONS[self.machine.state],
            conversation=tuple(self.conversation),
            rounds=self.rounds,
            error=self.error,
            events=tuple(self.events),
        )


class ConversationDriver:
    """Runs sessions: model request, state transition, tool execution, repeat."""

    def __init__(
        self,
        *,
        store: TaskStore | None = None,
        executor: ToolExecutor | None = None,
        settings: Settings | None = None,
        client_factory: ClientFactory = build_inference_client,
    ) -> None:
        if executor is None:
            if store is None:
                raise ValueError("either store or executor is required")
            executor = ToolExecutor(store)
        self._executor = executor
        self._settings = settings or Settings()
        self._client_factory = client_factory

    @property
    def settings(self) -> Settings:
        return self._settings

    async def run(self, scope: Scope, seed_prompt: str, config: SessionConfig | None = None) -> SessionResult:
        """Run one session to completion. Never raises; failures end in ``failed``."""
        session = Session(scope=scope, config=config or SessionConfig.from_settings(self._settings))
        with session_context(session.id):
            try:
                await self._run_session(session, seed_prompt)
            except Exception as exc:
                logger.exception("session.internal_error")
                session.fail(f"internal_error: {exc}")
            session.record(
                "session.finish",
                {
                    "state": session.machine.state.value,
                    "reason": _REASONS[session.machine.state].value,
                    "rounds": session.rounds,
                },
            )
        return session.result()

    def run_sync(self, scope: Scope, seed_prompt: str, config: SessionConfig | None = None) -> SessionResult:
        return asyncio.run(self.run(scope, seed_prompt, config))

    async def _run_session(self, session: Session, seed_prompt: str) -> None:
        config = session.config
        session.append(Message.user(seed_prompt))
        session.machine.apply(SessionStarted())
        session.record(
            "session.start",
            {"user_id": session.scope.user_id, "backend": config.backend, "max_rounds": config.max_rounds},
        )

        try:
            client = self._client_factory(config, self._settings)
        except ConfigurationError as exc:
            session.fail(f"configuration_error: {exc}")
            return

        system_prompt = build_system_prompt(session.scope)
        tools = self._executor.declarations()
        async with client:
            while not session.machine.terminal:
                if session.rounds >= config.max_rounds:
                    session.machine.apply(BudgetExhausted(session.rounds))
                    session.record("session.budget_exhausted", {"rounds": session.rounds})
                    break
                session.rounds += 1
                await self._run_round(session, client, tools, system_prompt)

    async def _run_round(
        self,
        session: Session,
        client: InferenceClient,
        tools: Sequence[dict[str, Any]],
        system_prompt: str,
    ) -> None:
        round_no = session.rounds
        session.record("session.round.start", {"round": round_no})
        try:
            reply = await client.send(session.conversation, tools, system_prompt)
        except MalformedResponseError as exc:
            session.machine.apply(RoundFailed(str(exc)))
            session.append(Message.user(RECOVERY_MESSAGE))
            session.record("session.round.finish", {"round": round_no, "outcome": "malformed", "error": str(exc)})
            return
        except InferenceError as exc:
            session.fail(str(exc))
            session.record("session.round.finish", {"round": round_no, "outcome": "fatal", "error": str(exc)})
            return

        session.append(reply)
        state = session.machine.apply(ModelReplied(tool_call_count=len(reply.tool_calls)))
        if state is SessionState.RUNNING:
            if session.config.reprompt_on_text:
                session.append(Message.user(REPROMPT_MESSAGE))
            session.record("session.round.finish", {"round": round_no, "outcome": "text"})
            return

        completed, fatal_error = self._execute_calls(session, reply.tool_calls)
        if fatal_error is not None:
            session.fail(fatal_error)
            outcome = "fatal"
        else:
            session.machine.apply(ToolsExecuted(completion_signalled=completed))
            outcome = "completed" if completed else "tools"
        session.record(
            "session.round.finish",
            {"round": round_no, "outcome": outcome, "tool_calls": len(reply.tool_calls)},
        )

    def _execute_calls(self, session: Session, calls: Sequence[ToolCall]) -> tuple[bool, str | None]:
        """Execute calls in emission order; every call gets exactly one result."""
        completed = False
        fatal_error: str | None = None
        for call in calls:
            if completed or fatal_error is not None:
                result = ToolResult.failure(call, SKIPPED_CALL_MESSAGE)
            else:
                result = self._executor.execute(session.scope, call)
                if result.fatal:
                    fatal_error = f"domain_unavailable: {result.payload}"
                elif result.ok and ToolExecutor.is_completion(call):
                    completed = True
                elif result.ok and call.name == ToolName.RECORD_PLAN.value:
                    session.record("session.plan", dict(result.payload))
            session.append(Message.tool(result))
            session.record(
                "tool.result",
                {"name": call.name, "call_id": call.id, "outcome": result.outcome.value},
            )
        return completed, fatal_error
