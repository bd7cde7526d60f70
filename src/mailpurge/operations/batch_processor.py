"""Per-sender fetch-then-delete loop.

For each sender the processor pages through matching message ids and
deletes each page with a single batch call:

- one page at a time, in cursor order
- a fresh credential before every page
- cancellation checks before and after the network calls
- an iteration cap so a cursor that never ends cannot run forever
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..core.config import DeleteSettings
from ..core.exceptions import MailPurgeError, RunawayGuardError
from ..core.interfaces import MessageStore, QueryBuilder
from ..models.run import Target
from ..utils.logging_utils import get_logger
from .cancellation import CancellationCoordinator
from .query import build_query
from .token_guard import TokenGuard

logger = get_logger(__name__)

# (target, deleted_in_batch, more_pages_remain)
BatchCallback = Callable[[Target, int, bool], Awaitable[None]]


class TargetOutcome(Enum):
    """How processing of a single sender ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class TargetResult:
    """Result of processing one sender.

    Attributes:
        identifier: Sender that was processed
        outcome: How processing ended
        deleted_count: Messages deleted for this sender
        batches: Successful fetch/delete round trips
        error: Human-readable error message when the outcome is FAILED
        exception: The underlying exception when the outcome is FAILED
    """

    identifier: str
    outcome: TargetOutcome = TargetOutcome.COMPLETED
    deleted_count: int = 0
    batches: int = 0
    error: str | None = None
    exception: Exception | None = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.outcome is TargetOutcome.COMPLETED


def _describe(exc: Exception) -> str:
    if isinstance(exc, MailPurgeError):
        return exc.message
    return str(exc) or "Unknown error"


class SenderBatchProcessor:
    """Deletes every message of one sender, page by page."""

    def __init__(
        self,
        store: MessageStore,
        token_guard: TokenGuard,
        cancellation: CancellationCoordinator,
        query_builder: QueryBuilder = build_query,
        settings: DeleteSettings | None = None,
        on_batch: BatchCallback | None = None,
    ) -> None:
        self.store = store
        self.token_guard = token_guard
        self.cancellation = cancellation
        self.query_builder = query_builder
        self.settings = settings or DeleteSettings()
        self.on_batch = on_batch

    async def process(
        self, target: Target, filter_rules: Sequence[str] = ()
    ) -> TargetResult:
        """Run the fetch/delete loop for ``target``.

        Fetch and delete failures end the sender with ``FAILED``; so does
        running past ``max_fetch_attempts`` pages. Credential failures are
        not caught here: they raise :class:`AuthError` to abort the run.

        Args:
            target: Sender to process
            filter_rules: Extra search clauses for the query

        Returns:
            TargetResult describing how the sender ended
        """
        query = self.query_builder(target, filter_rules)
        result = TargetResult(identifier=target.identifier)
        cursor: str | None = None
        attempts = 0

        logger.debug(
            f"Processing sender {target.identifier} (est. {target.estimated_count}) with query {query}",
            extra={"operation": "delete", "target": target.identifier},
        )

        while True:
            if self.cancellation.is_cancelled:
                logger.debug(f"Cancellation detected during batch processing for {target.identifier}")
                result.outcome = TargetOutcome.CANCELLED
                break

            credential = await self.token_guard.acquire()

            attempts += 1
            logger.debug(
                f"Fetching message ids (attempt {attempts}) for {target.identifier}",
                extra={"target": target.identifier},
            )

            try:
                page = await self.store.fetch_page(
                    credential, query, cursor, self.settings.batch_size
                )
                cursor = page.next_cursor

                if not page.ids:
                    logger.debug(f"No more message ids found for {target.identifier}")
                    break

                if self.cancellation.is_cancelled:
                    result.outcome = TargetOutcome.CANCELLED
                    break

                await self.store.delete_batch(credential, page.ids)
            except Exception as e:
                result.outcome = TargetOutcome.FAILED
                result.error = (
                    f"Failed during batch operation for {target.identifier}: {_describe(e)}"
                )
                result.exception = e
                logger.error(
                    result.error,
                    extra={
                        "operation": "delete",
                        "target": target.identifier,
                        "status": "failed",
                    },
                )
                break

            result.deleted_count += len(page.ids)
            result.batches += 1
            if self.on_batch is not None:
                await self.on_batch(target, len(page.ids), cursor is not None)

            if cursor is None:
                break

            if attempts >= self.settings.max_fetch_attempts:
                guard_error = RunawayGuardError(target.identifier, attempts)
                logger.warning(
                    f"Reached max fetch attempts ({self.settings.max_fetch_attempts}) "
                    f"for {target.identifier}. Stopping.",
                    extra={"target": target.identifier},
                )
                result.outcome = TargetOutcome.FAILED
                result.error = guard_error.message
                result.exception = guard_error
                break

            if self.cancellation.is_cancelled:
                result.outcome = TargetOutcome.CANCELLED
                break

            if self.settings.batch_delay > 0:
                await asyncio.sleep(self.settings.batch_delay)

        logger.debug(
            f"Sender {target.identifier} finished: {result.outcome.value}, "
            f"{result.deleted_count} deleted in {result.batches} batches",
            extra={"target": target.identifier, "status": result.outcome.value},
        )
        return result
