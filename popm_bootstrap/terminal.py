"""Operator-facing terminal output."""

from typing import Any

from rich.console import Console

console = Console(highlight=False)


def header(text: str) -> None:
    console.print(text, style="bold magenta", markup=False)


def success(text: str) -> None:
    console.print(text, style="bold green", markup=False)


def error(text: str) -> None:
    console.print(text, style="bold red", markup=False)


def warn(text: str) -> None:
    console.print(text, style="bold yellow", markup=False)


def detail(text: str) -> None:
    console.print(text, style="magenta", markup=False)


def dim(text: str) -> None:
    console.print(text, style="dim", markup=False)


def print(*objects: Any) -> None:
    console.print(*objects)
