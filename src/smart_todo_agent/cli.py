"""Command line entry point for smart-todo-agent."""

from __future__ import annotations

import json

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from smart_todo_agent.config import SessionConfig, get_settings
from smart_todo_agent.core.driver import ConversationDriver
from smart_todo_agent.core.types import Message, Role, SessionResult
from smart_todo_agent.domain import InMemoryTaskStore, Scope, Task, TaskFilter
from smart_todo_agent.inference import build_inference_client
from smart_todo_agent.tools import ToolExecutor

app = typer.Typer(
    name="smart-todo-agent",
    help="Manage tasks through a natural-language agent session.",
    add_completion=False,
    rich_markup_mode="rich",
)


class Renderer:
    """Rich terminal output for a finished session."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def message(self, message: Message) -> None:
        if message.role is Role.USER:
            self.console.print(f"[bold cyan]You:[/bold cyan] {escape(message.content or '')}")
            return
        if message.role is Role.MODEL:
            if message.has_text:
                self.console.print(f"[bold yellow]Agent:[/bold yellow] {escape(message.content or '')}")
            for call in message.tool_calls:
                arguments = json.dumps(call.arguments, ensure_ascii=False)
                self.console.print(f"[dim]-> {escape(call.name)} {escape(arguments)}[/dim]")
            return
        result = message.tool_result
        assert result is not None
        rendered = escape(json.dumps(result.payload, ensure_ascii=False, default=str))
        if result.ok:
            self.console.print(f"   [green]ok[/green] {rendered}")
        else:
            self.console.print(f"   [red]error[/red] {rendered}")

    def summary(self, result: SessionResult) -> None:
        style = "green" if result.completed else "red"
        self.console.print(
            f"[bold {style}]{result.state.value}[/bold {style}] "
            f"reason={result.reason.value} rounds={result.rounds} session={result.session_id}"
        )
        if result.error:
            self.error(result.error)

    def tasks(self, tasks: list[Task]) -> None:
        if not tasks:
            self.console.print("[dim](no tasks)[/dim]")
            return
        table = Table("id", "title", "status", "urgency", "due", "prerequisites")
        for task in tasks:
            table.add_row(
                str(task.id),
                escape(task.title),
                task.status.value,
                task.urgency.value,
                task.due_date.isoformat() if task.due_date else "",
                ", ".join(str(item) for item in task.prerequisite_ids),
            )
        self.console.print(table)


@app.command()
def run(
    prompt: str = typer.Argument(..., help="What the agent should do"),
    backend: str | None = typer.Option(None, "--backend", "-b", help="remote or local"),
    max_rounds: int | None = typer.Option(None, "--max-rounds", help="Round budget"),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-request timeout in seconds"),
    retries: int | None = typer.Option(None, "--retries", help="Retries after a transient backend failure"),
    user_id: int = typer.Option(1, "--user-id", help="Identity the session acts for"),
    preferences: str | None = typer.Option(None, "--preferences", help="Extra instructions for the model"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Run one agent session against an in-memory task list."""
    renderer = Renderer()
    settings = get_settings(log_profile="cli", log_level="DEBUG" if verbose else "WARNING")
    try:
        config = SessionConfig.from_settings(
            settings,
            backend=backend,
            max_rounds=max_rounds,
            request_timeout=timeout,
            retry_attempts=retries,
        )
    except ValidationError as exc:
        renderer.error(_describe_validation_error(exc))
        raise typer.Exit(2) from exc

    store = InMemoryTaskStore()
    scope = Scope(user_id=user_id, prompt_preferences=preferences)
    driver = ConversationDriver(store=store, settings=settings, client_factory=build_inference_client)
    result = driver.run_sync(scope, prompt, config)

    for message in result.conversation:
        renderer.message(message)
    renderer.tasks(store.list(scope, TaskFilter(include_done=True)))
    renderer.summary(result)
    if not result.completed:
        raise typer.Exit(1)


@app.command()
def tools() -> None:
    """Print the tool schema declared to the model."""
    console = Console()
    declarations = ToolExecutor(InMemoryTaskStore()).declarations()
    console.print_json(data=declarations)


def _describe_validation_error(error: ValidationError) -> str:
    parts: list[str] = []
    for item in error.errors(include_url=False):
        location = ".".join(str(piece) for piece in item["loc"])
        parts.append(f"{location}: {item['msg']}")
    return "invalid options: " + "; ".join(parts)


if __name__ == "__main__":
    app()
