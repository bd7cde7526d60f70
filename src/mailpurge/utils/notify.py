"""User-facing notifications.

Two notifier flavours are provided: one that routes everything through the
package logger (used by library callers and tests), and one that prints to
the shared rich console for the CLI.
"""

from rich.console import Console

from .logging_utils import get_logger
from .rich_utils import get_console

_logger = get_logger(__name__)


def _join(title: str, description: str | None) -> str:
    return f"{title}: {description}" if description else title


class LoggingNotifier:
    """Notifier that writes notifications to the log."""

    def info(self, title: str, description: str | None = None) -> None:
        _logger.info(_join(title, description), extra={"status": "info"})

    def success(self, title: str, description: str | None = None) -> None:
        _logger.info(f"✅ {_join(title, description)}", extra={"status": "success"})

    def warning(self, title: str, description: str | None = None) -> None:
        _logger.warning(f"⚠️  {_join(title, description)}", extra={"status": "warning"})

    def error(self, title: str, description: str | None = None) -> None:
        _logger.error(f"❌ {_join(title, description)}", extra={"status": "error"})


class ConsoleNotifier:
    """Notifier that prints styled messages on the rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or get_console()

    def _print(self, style: str, prefix: str, title: str, description: str | None) -> None:
        self.console.print(f"[{style}]{prefix} {title}[/{style}]")
        if description:
            self.console.print(f"  [muted]{description}[/muted]")

    def info(self, title: str, description: str | None = None) -> None:
        self._print("info", "ℹ", title, description)

    def success(self, title: str, description: str | None = None) -> None:
        self._print("success", "✅", title, description)

    def warning(self, title: str, description: str | None = None) -> None:
        self._print("warning", "⚠️ ", title, description)

    def error(self, title: str, description: str | None = None) -> None:
        self._print("error", "❌", title, description)
