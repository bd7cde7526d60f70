"""mailpurge - Bulk Gmail deletion by sender."""

# Core
from .core.config import DeleteSettings, get_env_config
from .core.exceptions import (
    ActionLogError,
    ApiError,
    AuthError,
    JobStateError,
    MailPurgeError,
    RateLimitError,
    RunawayGuardError,
    ValidationError,
)
from .core.gmail_client import GmailMessageStore, GmailTokenProvider

# Models
from .models.run import (
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

# Operations
from .operations import (
    AbortSignal,
    CancellationCoordinator,
    DeleteController,
    JobRunner,
    ProgressReporter,
    QueueAdapter,
    RunHandle,
    RunStateStore,
    SenderBatchProcessor,
    StartResult,
    TokenGuard,
    build_query,
)

# Storage
from .storage import JsonActionLogStore, JsonSenderRegistry, LocalActionLog

__version__ = "1.0.0"

__all__ = [
    # Core
    "DeleteSettings",
    "get_env_config",
    "GmailMessageStore",
    "GmailTokenProvider",
    # Exceptions
    "MailPurgeError",
    "ValidationError",
    "AuthError",
    "ApiError",
    "RateLimitError",
    "RunawayGuardError",
    "ActionLogError",
    "JobStateError",
    # Models
    "Target",
    "DeleteOptions",
    "RunState",
    "RunStatus",
    "EndType",
    "LogEntry",
    "ReauthReason",
    "ReauthRequest",
    "DeleteJobPayload",
    "ExecutorResult",
    # Operations
    "AbortSignal",
    "CancellationCoordinator",
    "DeleteController",
    "JobRunner",
    "ProgressReporter",
    "QueueAdapter",
    "RunHandle",
    "RunStateStore",
    "SenderBatchProcessor",
    "StartResult",
    "TokenGuard",
    "build_query",
    # Storage
    "JsonActionLogStore",
    "JsonSenderRegistry",
    "LocalActionLog",
]
