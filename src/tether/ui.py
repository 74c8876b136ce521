"""Console output shared by the CLI commands."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

console = Console()


def _emit(style: str, prefix: str, message: str) -> None:
    console.print(f"[{style}]{escape(prefix)} {escape(message)}[/{style}]")


def info(message: str) -> None:
    _emit("blue", "[i]", message)


def success(message: str) -> None:
    _emit("green", "[+]", message)


def warn(message: str) -> None:
    _emit("yellow", "[!]", message)


def error(message: str) -> None:
    _emit("red", "[x]", message)


def step(message: str) -> None:
    console.print(f"\n[bold cyan]>>> {escape(message)}[/bold cyan]")
