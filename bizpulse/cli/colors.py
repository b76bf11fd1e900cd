"""
BizPulse CLI - styled output helpers built on Click.

    success(), error(), warning(), info(), dim(), bold()
    section()       - section divider with title
    kv()            - aligned key-value pair
    priority_tag()  - coloured priority label for a notification

Colour is dropped automatically when the output is not a terminal.
"""

from __future__ import annotations

import shutil
from typing import Optional

import click

_CHECK = "\u2713"   # ✓
_CROSS = "\u2717"   # ✗
_RULE = "\u2500"    # ─

_PRIORITY_COLOURS = {
    "low": "white",
    "medium": "cyan",
    "high": "yellow",
    "urgent": "red",
}


def _width() -> int:
    return max(40, min(shutil.get_terminal_size((80, 24)).columns, 100))


def success(message: str) -> None:
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    """Print error message in red (to stderr)."""
    click.echo(click.style(message, fg="red"), err=True)


def warning(message: str) -> None:
    click.echo(click.style(message, fg="yellow"))


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"))


def dim(message: str) -> None:
    click.echo(click.style(message, dim=True))


def bold(message: str) -> str:
    """Return bold-styled text (does not echo)."""
    return click.style(message, bold=True)


def section(title: str, *, width: Optional[int] = None) -> None:
    """
    Print a section header.

        ── Connection ─────────────────────────
    """
    w = width or _width()
    dashes = max(4, w - len(title) - 4)
    click.echo(click.style(f"{_RULE}{_RULE} {title} {_RULE * dashes}", fg="cyan", bold=True))


def kv(key: str, value: object, *, key_width: int = 24, indent: int = 2) -> None:
    """
    Print an aligned key-value pair.

        backend_url:            http://localhost:5000
    """
    k = click.style(f"{key}:", fg="white")
    v = click.style(str(value), fg="cyan")
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{' ' * indent}{k}{padding}{v}")


def priority_tag(priority: str) -> str:
    """Return a coloured ``[priority]`` label (does not echo)."""
    fg = _PRIORITY_COLOURS.get(priority, "white")
    return click.style(f"[{priority}]", fg=fg, bold=priority in ("high", "urgent"))
