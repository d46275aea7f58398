"""Session progress automaton.

The transition function is pure: it maps ``(state, event)`` to the next state
and performs no I/O. ``StateMachine`` wraps it with the current state and a
transition history for the driver.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from smart_todo_agent.core.types import SessionState


class InvalidTransitionError(Exception):
    """Raised when an event is not accepted in the current state."""

    def __init__(self, state: SessionState, event: SessionEvent) -> None:
        super().__init__(f"event {type(event).__name__} not allowed in state {state.value}")
        self.state = state
        self.event = event


@dataclass(frozen=True)
class SessionEvent:
    """Base class for state machine inputs."""


@dataclass(frozen=True)
class SessionStarted(SessionEvent):
    """The seed prompt was appended as the first user message."""


@dataclass(frozen=True)
class ModelReplied(SessionEvent):
    tool_call_count: int


@dataclass(frozen=True)
class RoundFailed(SessionEvent):
    """The model output of this round could not be used."""

    reason: str


@dataclass(frozen=True)
class ToolsExecuted(SessionEvent):
    completion_signalled: bool


@dataclass(frozen=True)
class BudgetExhausted(SessionEvent):
    rounds: int


@dataclass(frozen=True)
class FatalErrorOccurred(SessionEvent):
    reason: str


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    if state.terminal:
        raise InvalidTransitionError(state, event)

    if isinstance(event, FatalErrorOccurred):
        return SessionState.FAILED
    if isinstance(event, BudgetExhausted):
        return SessionState.EXHAUSTED

    if state is SessionState.IDLE:
        if isinstance(event, SessionStarted):
            return SessionState.RUNNING
    elif state is SessionState.RUNNING:
        if isinstance(event, ModelReplied):
            if event.tool_call_count > 0:
                return SessionState.AWAITING_TOOL_RESULTS
            return SessionState.RUNNING
        if isinstance(event, RoundFailed):
            return SessionState.RUNNING
    elif state is SessionState.AWAITING_TOOL_RESULTS:
        if isinstance(event, ToolsExecuted):
            return SessionState.COMPLETED if event.completion_signalled else SessionState.RUNNING

    raise InvalidTransitionError(state, event)


@dataclass
class StateMachine:
    state: SessionState = SessionState.IDLE
    history: list[tuple[SessionState, SessionEvent, SessionState]] = field(default_factory=list)

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    def apply(self, event: SessionEvent) -> SessionState:
        previous = self.state
        self.state = transition(previous, event)
        self.history.append((previous, event, self.state))
        return self.state
