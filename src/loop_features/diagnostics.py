"""Coloured diagnostics on stderr, so stdout stays free for tables and dumps."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

console = Console(stderr=True)

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


def debug(message: str) -> None:
    """Per-loop trace; only shown in verbose mode."""
    if _verbose:
        console.print(f"[dim]{escape(message)}[/dim]")


def info(message: str) -> None:
    console.print(f"[bright_cyan]INFO:[/bright_cyan] {escape(message)}")


def warn(message: str) -> None:
    console.print(f"[yellow]WARNING: {escape(message)}[/yellow]")


def error(message: str) -> None:
    console.print(f"[bold red]ERROR: {escape(message)}[/bold red]")
