"""Allow ``python -m smart_todo_agent``."""

from smart_todo_agent.cli import app

if __name__ == "__main__":
    app()
