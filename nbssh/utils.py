"""Console singletons and display helpers for the nbssh CLI."""

from __future__ import annotations

import shlex

from rich.console import Console
from rich.markup import escape

# ---------------------------------------------------------------------------
# Console singletons
# ---------------------------------------------------------------------------

console = Console()
err_console = Console(stderr=True)

# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def format_command(cmd: list[str]) -> str:
    """Render argv as one line a local shell would split back into *cmd*."""
    return shlex.join(cmd)


def print_error(msg: str) -> None:
    """Print an error message to stderr."""
    # messages quote user input such as '[::1]:22'
    err_console.print(f"[bold red]Error:[/bold red] {escape(msg)}", highlight=False)


def print_success(msg: str) -> None:
    console.print(f"[bold green]✓[/bold green] {escape(msg)}")


def print_info(msg: str) -> None:
    console.print(f"[bold blue]ℹ[/bold blue] {escape(msg)}")


def print_warning(msg: str) -> None:
    """Print a warning to stderr."""
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {escape(msg)}", highlight=False)
