"""Utility functions for mailpurge."""

from .csv_utils import read_targets
from .estimate import estimate_runtime_seconds, format_duration
from .logging_utils import (
    configure_from_env,
    configure_from_yaml,
    get_logger,
    setup_logging,
)
from .notify import ConsoleNotifier, LoggingNotifier
from .rich_utils import get_console, install_rich_tracebacks

__all__ = [
    "read_targets",
    "estimate_runtime_seconds",
    "format_duration",
    "configure_from_env",
    "configure_from_yaml",
    "get_logger",
    "setup_logging",
    "ConsoleNotifier",
    "LoggingNotifier",
    "get_console",
    "install_rich_tracebacks",
]
