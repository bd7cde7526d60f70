"""Data models for bulk message deletion."""

from mailpurge.models.run import (
    TERMINAL_STATUSES,
    DeleteJobPayload,
    DeleteOptions,
    EndType,
    ExecutorResult,
    LogEntry,
    ReauthReason,
    ReauthRequest,
    RunState,
    RunStatus,
    Target,
)

__all__ = [
    "TERMINAL_STATUSES",
    "DeleteJobPayload",
    "DeleteOptions",
    "EndType",
    "ExecutorResult",
    "LogEntry",
    "ReauthReason",
    "ReauthRequest",
    "RunState",
    "RunStatus",
    "Target",
]
