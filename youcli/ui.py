"""Shared UI helpers for console output."""

from contextlib import contextmanager
from enum import Enum

from rich.console import Console
from rich.markup import escape

# Shared console instance so Rich live displays and prompts coordinate correctly.
console = Console()


class Level(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LEVEL_STYLES = {
    Level.INFO: "[bold green]>[/bold green]",
    Level.WARNING: "[bold yellow]![/bold yellow]",
    Level.ERROR: "[bold red]x[/bold red]",
}


def display_message(level: Level, message: str) -> None:
    """Render a one-line leveled message."""
    console.print(f"{_LEVEL_STYLES[Level(level)]} {escape(message)}")


def display_tree_message(depth: int, message: str) -> None:
    """Render a message nested under the previous one."""
    indent = "  " * max(depth - 1, 0)
    console.print(f"{indent}[dim]└─ {escape(message)}[/dim]")


def display_output(chunk: str) -> None:
    """Echo raw process output without markup or highlighting."""
    console.out(chunk, end="", highlight=False)


def input_message(prompt: str) -> str:
    """Show a prompt and read one line from the user."""
    console.print(f"[bold cyan]?[/bold cyan] {escape(prompt)}")
    return console.input("[bold]> [/bold]")


@contextmanager
def thinking(message: str = "LLM is thinking..."):
    """Spinner shown while waiting on the LLM."""
    with console.status(f"[dim]{escape(message)}[/dim]"):
        yield
