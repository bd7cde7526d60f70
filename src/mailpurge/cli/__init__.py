"""CLI module for mailpurge."""

from .commands import OperationHandler, build_controller
from .main import cli, main

__all__ = ["OperationHandler", "build_controller", "cli", "main"]
