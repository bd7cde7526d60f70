"""Protocol interfaces for the collaborators of the deletion engine."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models.run import EndType, LogEntry, Target

# (processed_so_far, total_estimate)
ProgressSink = Callable[[int, int], None]

# (target, filter_rules) -> Gmail search query
QueryBuilder = Callable[[Target, Sequence[str]], str]

# (operation, item_count) -> estimated seconds
RuntimeEstimator = Callable[[str, int], float]


@dataclass(frozen=True)
class MessagePage:
    """One page of message ids returned by the store.

    Attributes:
        ids: Message ids on this page
        next_cursor: Token for the next page, None when exhausted
    """

    ids: list[str] = field(default_factory=list)
    next_cursor: str | None = None


class TokenProvider(Protocol):
    """Protocol for OAuth credential access."""

    async def get_token(self) -> str:
        """Return the cached access token, refreshing it if expired."""
        ...

    async def force_refresh(self) -> str:
        """Refresh the access token unconditionally."""
        ...

    def peek(self) -> str | None:
        """Return the cached access token without refreshing."""
        ...

    def time_remaining(self) -> float:
        """Seconds until the cached access token expires (0 if none)."""
        ...

    def has_refresh_token(self) -> bool:
        """Whether a refresh credential is available at all."""
        ...


class MessageStore(Protocol):
    """Protocol for the quota-limited message store."""

    def is_ready(self) -> bool:
        """Whether the API client is ready for calls."""
        ...

    async def fetch_page(
        self,
        credential: str,
        query: str,
        cursor: str | None,
        page_size: int,
    ) -> MessagePage:
        """Fetch up to ``page_size`` message ids matching ``query``.

        Raises:
            ApiError: On quota, permission or transient failure
        """
        ...

    async def delete_batch(self, credential: str, ids: Sequence[str]) -> None:
        """Permanently delete ``ids`` in one call.

        Raises:
            ApiError: On quota, permission or transient failure
        """
        ...


class DurableLog(Protocol):
    """Protocol for the remote action log."""

    async def create(self, payload: dict[str, Any]) -> str:
        """Create a log entry and return its id."""
        ...

    async def update(self, log_id: str, patch: dict[str, Any]) -> None:
        """Apply a partial update to an entry."""
        ...

    async def complete(
        self,
        log_id: str,
        end_type: EndType,
        processed_count: int,
        error: str | None = None,
    ) -> None:
        """Finalize an entry with its terminal end type."""
        ...


class LocalLog(Protocol):
    """Protocol for the local mirror of the current action."""

    def create(self, entry: LogEntry) -> None:
        ...

    def set_durable_id(self, durable_id: str) -> None:
        ...

    def update_progress(self, batches_completed: int, processed_count: int) -> None:
        ...

    def complete(self, end_type: EndType, error: str | None = None) -> None:
        ...

    def clear(self) -> None:
        ...


class ActionRegistry(Protocol):
    """Protocol for recording which senders have been acted upon."""

    async def mark_action_taken(self, identifier: str, action: str) -> None:
        ...


class Notifier(Protocol):
    """Protocol for user-facing notifications."""

    def info(self, title: str, description: str | None = None) -> None:
        ...

    def success(self, title: str, description: str | None = None) -> None:
        ...

    def warning(self, title: str, description: str | None = None) -> None:
        ...

    def error(self, title: str, description: str | None = None) -> None:
        ...
