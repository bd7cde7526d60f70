"""Rich utilities: shared console, themes, and helpers."""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)
from rich.theme import Theme
from rich.traceback import install as rich_traceback_install

_console: Console | None = None


def get_console() -> Console:
    """Return a shared Rich Console instance."""
    global _console
    if _console is None:
        theme = Theme(
            {
                "info": "cyan",
                "warning": "yellow",
                "error": "red",
                "success": "green",
                "muted": "grey62",
            }
        )
        _console = Console(theme=theme, highlight=False, soft_wrap=False)
    return _console


def create_delete_progress(console: Console | None = None) -> Progress:
    """Build the progress bar used while a deletion run is active."""
    return Progress(
        TextColumn("[info]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("[muted]{task.fields[eta]}"),
        TimeElapsedColumn(),
        console=console or get_console(),
        transient=False,
    )


def install_rich_tracebacks() -> None:
    """Enable rich tracebacks globally for nicer error output."""
    rich_traceback_install(show_locals=False, word_wrap=True, suppress=["click"])
