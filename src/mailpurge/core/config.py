"""Configuration for the deletion engine and the Gmail API access."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import dotenv

from mailpurge.core.exceptions import AuthError, ValidationError

# Global constants for the deletion loop
TOKEN_REFRESH_THRESHOLD = 120.0  # seconds of token lifetime below which we force a refresh
DELETION_BATCH_SIZE = 1000  # max ids accepted by messages.batchDelete
BATCH_DELAY = 0.15  # seconds between batches of the same sender
MAX_FETCH_ATTEMPTS = 30  # page iterations per sender before giving up
SMALL_RUN_THRESHOLD = 5  # estimated total at or below which we pause before starting
SMALL_RUN_DELAY = 0.5  # seconds
LONG_RUN_WARNING_SECONDS = 55 * 60

# HTTP configuration
API_TIMEOUT = 30  # request timeout in seconds
GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

DEFAULT_DATA_DIR = ".mailpurge"


@dataclass
class DeleteSettings:
    """Tunable knobs of a deletion run.

    Defaults mirror the module constants; tests shrink the delays to zero.
    """

    token_refresh_threshold: float = TOKEN_REFRESH_THRESHOLD
    batch_size: int = DELETION_BATCH_SIZE
    batch_delay: float = BATCH_DELAY
    max_fetch_attempts: int = MAX_FETCH_ATTEMPTS
    small_run_threshold: int = SMALL_RUN_THRESHOLD
    small_run_delay: float = SMALL_RUN_DELAY
    long_run_warning_seconds: float = LONG_RUN_WARNING_SECONDS

    def __post_init__(self) -> None:
        if not 0 < self.batch_size <= DELETION_BATCH_SIZE:
            raise ValidationError(
                f"batch_size must be between 1 and {DELETION_BATCH_SIZE}",
                field="batch_size",
                value=str(self.batch_size),
            )
        if self.max_fetch_attempts < 1:
            raise ValidationError(
                "max_fetch_attempts must be positive",
                field="max_fetch_attempts",
                value=str(self.max_fetch_attempts),
            )
        if self.batch_delay < 0 or self.small_run_delay < 0:
            raise ValidationError("Delays cannot be negative")


def check_env_file() -> None:
    """Check if .env file exists and load it."""
    env_path = ".env"
    if os.path.exists(env_path):
        dotenv.load_dotenv(env_path)


def validate_env_var(name: str, value: str | None) -> str:
    """Validate that an environment variable is set and not empty.

    Args:
        name: Environment variable name
        value: Environment variable value

    Returns:
        str: The validated value

    Raises:
        AuthError: If the environment variable is missing or empty
    """
    if not value or not value.strip():
        raise AuthError(
            f"Environment variable {name} is required but not set or empty",
            reason="not_connected",
        )
    return value.strip()


def get_env_config() -> dict[str, Any]:
    """Get Gmail and storage configuration from environment variables.

    Returns:
        Dict[str, Any]: Configuration dictionary

    Raises:
        AuthError: If required OAuth variables are missing
    """
    check_env_file()

    client_id = validate_env_var("GMAIL_CLIENT_ID", os.getenv("GMAIL_CLIENT_ID"))
    client_secret = validate_env_var(
        "GMAIL_CLIENT_SECRET", os.getenv("GMAIL_CLIENT_SECRET")
    )
    refresh_token = os.getenv("GMAIL_REFRESH_TOKEN") or None

    if not client_id.endswith(".apps.googleusercontent.com"):
        raise AuthError(
            f"Invalid Google OAuth client ID format: {client_id[:12]}...",
            reason="not_connected",
        )

    return {
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "user_id": os.getenv("MAILPURGE_USER_ID") or None,
        "data_dir": Path(os.getenv("MAILPURGE_DATA_DIR", DEFAULT_DATA_DIR)),
        "token_url": GOOGLE_TOKEN_URL,
        "api_base_url": GMAIL_API_BASE_URL,
    }
