"""Core functionality for mailpurge."""

from mailpurge.core.config import DeleteSettings, get_env_config
from mailpurge.core.exceptions import (
    ActionLogError,
    ApiError,
    AuthError,
    JobStateError,
    MailPurgeError,
    RateLimitError,
    RunawayGuardError,
    ValidationError,
)

__all__ = [
    "DeleteSettings",
    "get_env_config",
    "MailPurgeError",
    "ValidationError",
    "AuthError",
    "ApiError",
    "RateLimitError",
    "RunawayGuardError",
    "ActionLogError",
    "JobStateError",
]
