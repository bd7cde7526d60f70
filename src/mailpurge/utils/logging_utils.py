"""Structured logging utilities for mailpurge."""

import json
import logging
import logging.config
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

# Record attributes that carry run context into formatted output
CONTEXT_FIELDS = (
    "operation",
    "target",
    "action_log_id",
    "processed_count",
    "status",
    "duration",
)


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for terminal output."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, *args: Any, disable_colors: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.disable_colors = disable_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors for terminal output."""
        if (
            not self.disable_colors
            and hasattr(sys.stderr, "isatty")
            and sys.stderr.isatty()
        ):
            color = self.COLORS.get(record.levelname, "")
            reset = self.COLORS["RESET"]
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{reset}"

        return super().format(record)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        return json.dumps(log_entry, default=str)


class DetailedFormatter(logging.Formatter):
    """Detailed formatter with context information."""

    def format(self, record: logging.LogRecord) -> str:
        base_msg = super().format(record)

        context_parts = []
        if hasattr(record, "operation"):
            context_parts.append(f"op={record.operation}")
        if hasattr(record, "target"):
            context_parts.append(f"target={record.target}")
        if hasattr(record, "action_log_id"):
            context_parts.append(f"log={record.action_log_id}")
        if hasattr(record, "processed_count"):
            context_parts.append(f"processed={record.processed_count}")
        if hasattr(record, "duration"):
            context_parts.append(f"duration={record.duration:.3f}s")

        if context_parts:
            return base_msg + " [" + ", ".join(context_parts) + "]"

        return base_msg


class OperationFilter(logging.Filter):
    """Filter to add operation context to log records."""

    def __init__(self, operation: str | None = None):
        super().__init__()
        self.operation = operation

    def filter(self, record: logging.LogRecord) -> bool:
        if self.operation and not hasattr(record, "operation"):
            record.operation = self.operation
        return True


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    structured: bool = False,
    operation: str | None = None,
    log_format: str = "console",
    disable_colors: bool = False,
) -> logging.Logger:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path for file output
        structured: Whether to use structured JSON logging
        operation: Current operation context for filtering
        log_format: Log format (console, json, detailed)
        disable_colors: Whether to disable colored output

    Returns:
        logging.Logger: Configured package logger
    """
    root_logger = logging.getLogger("mailpurge")
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)

    if structured or log_format == "json":
        console_formatter: logging.Formatter = StructuredFormatter()
    elif log_format == "detailed":
        console_formatter = DetailedFormatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        console_formatter = ColoredFormatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            disable_colors=disable_colors,
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        # Files always get JSON lines
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if operation:
        operation_filter = OperationFilter(operation)
        for handler in root_logger.handlers:
            handler.addFilter(operation_filter)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger: Logger instance under the ``mailpurge`` hierarchy
    """
    if name == "mailpurge" or name.startswith("mailpurge."):
        return logging.getLogger(name)
    return logging.getLogger(f"mailpurge.{name}")


def configure_from_env() -> logging.Logger:
    """Configure logging from environment variables.

    Environment variables:
        MAILPURGE_LOG_LEVEL: Log level (default: INFO)
        MAILPURGE_LOG_FILE: Log file path (optional)
        MAILPURGE_LOG_STRUCTURED: Use structured logging (default: false)
        MAILPURGE_LOG_OPERATION: Current operation context (optional)
        MAILPURGE_LOG_FORMAT: Log format (console, json, detailed) (default: console)
        MAILPURGE_LOG_DISABLE_COLORS: Disable colored output (default: false)

    Returns:
        logging.Logger: Configured logger instance
    """
    return setup_logging(
        level=os.getenv("MAILPURGE_LOG_LEVEL", "INFO"),
        log_file=os.getenv("MAILPURGE_LOG_FILE"),
        structured=os.getenv("MAILPURGE_LOG_STRUCTURED", "false").lower() == "true",
        operation=os.getenv("MAILPURGE_LOG_OPERATION"),
        log_format=os.getenv("MAILPURGE_LOG_FORMAT", "console"),
        disable_colors=os.getenv("MAILPURGE_LOG_DISABLE_COLORS", "false").lower()
        == "true",
    )


def configure_from_yaml(config_path: str | Path) -> logging.Logger:
    """Configure logging from a YAML ``dictConfig`` file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        logging.Logger: Configured logger instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Logging config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f)

        logging.config.dictConfig(config)
        return logging.getLogger("mailpurge")
    except Exception as e:
        raise ValueError(f"Invalid logging configuration: {e}") from e


def init_default_logging() -> None:
    """Initialize default logging configuration if not already configured."""
    if not logging.getLogger("mailpurge").handlers:
        configure_from_env()
