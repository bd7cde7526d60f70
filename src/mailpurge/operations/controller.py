"""Deletion run orchestration.

The controller owns the run state machine::

    idle -> preparing -> deleting -> completed | error | cancelled

``start`` validates and prepares synchronously with the caller, then spawns
the run as an asyncio task and hands back a :class:`RunHandle`. Senders are
processed strictly in input order; the first sender that fails stops the run.
Both action logs are finalized exactly once, and the durable write is
awaited before the terminal state is published.
"""

import asyncio
import math
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from ..core.config import DeleteSettings
from ..core.exceptions import (
    ActionLogError,
    AuthError,
    MailPurgeError,
    ValidationError,
)
from ..core.interfaces import (
    ActionRegistry,
    DurableLog,
    LocalLog,
    MessageStore,
    Notifier,
    ProgressSink,
    QueryBuilder,
    RuntimeEstimator,
    TokenProvider,
)
from ..models.run import (
    DeleteOptions,
    EndType,
    LogEntry,
    ReauthReason,
    ReauthRequest,
    RunState,
    RunStatus,
    Target,
)
from ..storage.action_log import LocalActionLog
from ..utils.estimate import estimate_runtime_seconds, format_duration
from ..utils.logging_utils import get_logger
from ..utils.notify import LoggingNotifier
from .batch_processor import SenderBatchProcessor, TargetOutcome
from .cancellation import CancellationCoordinator
from .progress import ProgressReporter, RunStateStore, StateObserver
from .query import build_query
from .token_guard import TokenGuard

logger = get_logger(__name__)

OPERATION = "delete"


class RunHandle:
    """Completion handle for a spawned deletion run."""

    def __init__(self, task: "asyncio.Task[None]", controller: "DeleteController"):
        self._task = task
        self._controller = controller

    @property
    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> RunState:
        """Wait for the run to settle and return its terminal state.

        Cancelling the waiter does not cancel the run.
        """
        await asyncio.shield(self._task)
        return self._controller.state


@dataclass(frozen=True)
class StartResult:
    """Outcome of :meth:`DeleteController.start`.

    Attributes:
        accepted: Whether the run was spawned
        error: Why it was not, when there is an error to report
        handle: Completion handle of the spawned run
    """

    accepted: bool
    error: MailPurgeError | None = None
    handle: RunHandle | None = None


class DeleteController:
    """Runs one bulk deletion at a time against a message store."""

    def __init__(
        self,
        store: MessageStore,
        token_provider: TokenProvider,
        durable_log: DurableLog,
        local_log: LocalLog | None = None,
        *,
        user_id: str | None,
        query_builder: QueryBuilder = build_query,
        estimator: RuntimeEstimator = estimate_runtime_seconds,
        action_registry: ActionRegistry | None = None,
        notifier: Notifier | None = None,
        settings: DeleteSettings | None = None,
        state_store: RunStateStore | None = None,
        on_reauth_required: Callable[[ReauthRequest], None] | None = None,
    ) -> None:
        self.store = store
        self.token_provider = token_provider
        self.durable_log = durable_log
        self.local_log = local_log or LocalActionLog()
        self.user_id = user_id
        self.estimator = estimator
        self.action_registry = action_registry
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings or DeleteSettings()
        self.state_store = state_store or RunStateStore()
        self.on_reauth_required = on_reauth_required
        self.reauth_request: ReauthRequest | None = None

        self.cancellation = CancellationCoordinator()
        self.reporter = ProgressReporter(
            self.state_store, estimator, self.settings.batch_size
        )
        self.processor = SenderBatchProcessor(
            store,
            TokenGuard(
                token_provider,
                self.settings.token_refresh_threshold,
                on_auth_failure=self._on_auth_failure,
            ),
            self.cancellation,
            query_builder=query_builder,
            settings=self.settings,
            on_batch=self._on_batch,
        )

        self._task: asyncio.Task[None] | None = None
        self._starting = False
        self._log_id: str | None = None
        self._log_finalized = False
        self._log_lock = asyncio.Lock()
        self._processed = 0
        self._batches_completed = 0

    # --- Observation ---------------------------------------------------

    @property
    def state(self) -> RunState:
        return self.state_store.state

    @property
    def action_log_id(self) -> str | None:
        return self._log_id

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        return self.state_store.subscribe(observer)

    async def wait(self) -> RunState:
        """Wait for the current run (if any) to settle."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.state

    def close_reauth(self) -> None:
        logger.debug("Closing reauth request")
        self.reauth_request = None

    # --- Start ---------------------------------------------------------

    async def start(
        self,
        targets: Iterable[Target],
        progress_sink: ProgressSink | None = None,
        external_abort: Any = None,
        options: DeleteOptions | None = None,
    ) -> StartResult:
        """Validate, prepare and spawn a deletion run.

        Args:
            targets: Senders to delete from, in processing order
            progress_sink: Optional ``(processed, total)`` callback
            external_abort: Optional abort token tied to the caller
            options: Filter rules and other run options

        Returns:
            StartResult: ``accepted=True`` with a handle once the run is spawned
        """
        targets = list(targets)
        options = options or DeleteOptions()
        logger.debug(
            f"Starting deletion process for {len(targets)} senders",
            extra={"operation": OPERATION},
        )

        try:
            self._validate(targets)
        except ValidationError as e:
            logger.warning(f"Deletion rejected: {e}", extra={"operation": OPERATION})
            if e.field == "targets":
                self.notifier.warning("No senders selected for deletion.")
            else:
                self.notifier.error("Cannot start deletion", e.message)
            return StartResult(accepted=False, error=e)

        self._starting = True
        try:
            return await self._prepare(targets, progress_sink, external_abort, options)
        finally:
            self._starting = False

    async def _prepare(
        self,
        targets: list[Target],
        progress_sink: ProgressSink | None,
        external_abort: Any,
        options: DeleteOptions,
    ) -> StartResult:
        self._reset_run(external_abort)
        self.state_store.set(RunState(status=RunStatus.PREPARING))
        logger.debug("Preparing deletion...")

        if self.cancellation.is_cancelled:
            return self._abort_preparation()

        try:
            await self._check_credentials()
        except AuthError as e:
            logger.error(f"Failed to validate initial token: {e}")
            if self.cancellation.is_cancelled:
                return self._abort_preparation()
            self._request_reauth(ReauthReason.EXPIRED)
            self._set_terminal(RunStatus.ERROR, error=e.message)
            return StartResult(accepted=False, error=e)

        total = sum(t.estimated_count for t in targets)
        runtime = self.estimator(OPERATION, total)
        eta = format_duration(runtime)
        self._update_state(total_estimate=total, eta=eta)
        logger.debug(f"Total estimated emails: {total}, estimated runtime: {eta}")
        self.reporter.begin(total, progress_sink)

        if total <= self.settings.small_run_threshold:
            await asyncio.sleep(self.settings.small_run_delay)

        if runtime > self.settings.long_run_warning_seconds:
            self.notifier.warning(
                "Long Deletion Detected",
                f"Deleting these emails may take {eta}. Keep this process running; "
                "if your session expires you might need to reconnect.",
            )

        if self.cancellation.is_cancelled:
            return self._abort_preparation()

        log_error = await self._open_logs(targets, total, runtime)
        if log_error is not None:
            if self.cancellation.is_cancelled:
                self._abort_preparation()
                return StartResult(accepted=False, error=log_error)
            self._set_terminal(RunStatus.ERROR, error="Failed to log action start.")
            self.notifier.error("Deletion Failed", "Failed to log action start.")
            return StartResult(accepted=False, error=log_error)

        if self.cancellation.is_cancelled:
            await self._finalize_logs(EndType.USER_STOPPED, 0)
            return self._abort_preparation()

        self._update_state(status=RunStatus.DELETING, progress_percent=0)
        await self._durable_update({"status": "deleting"})
        if self.state.is_terminal:
            # cancel() landed while the status update was in flight
            return StartResult(accepted=False)

        logger.info(
            f"Starting active deletion of ~{total} emails from {len(targets)} senders",
            extra={"operation": OPERATION, "action_log_id": self._log_id},
        )
        self._task = asyncio.create_task(
            self._run(targets, options), name="mailpurge-delete-run"
        )
        return StartResult(accepted=True, handle=RunHandle(self._task, self))

    def _validate(self, targets: list[Target]) -> None:
        if (
            self._starting
            or self.state.status.is_active
            or (self._task is not None and not self._task.done())
        ):
            raise ValidationError("A deletion is already in progress", field="run")
        if not self.user_id:
            raise ValidationError(
                "You must be logged in to delete emails.", field="user_id"
            )
        if not targets:
            raise ValidationError("No senders selected for deletion.", field="targets")
        if not self.store.is_ready():
            raise ValidationError(
                "Gmail client not ready",
                field="client",
                details="Please wait a moment and try again.",
            )

    def _reset_run(self, external_abort: Any) -> None:
        self.cancellation.reset(external_abort)
        self.reauth_request = None
        self._task = None
        self._log_id = None
        self._log_finalized = False
        self._log_lock = asyncio.Lock()
        self._processed = 0
        self._batches_completed = 0

    async def _check_credentials(self) -> None:
        if not self.token_provider.has_refresh_token():
            raise AuthError("Gmail not connected.", reason="not_connected")
        try:
            await self.token_provider.get_token()
        except Exception as e:
            raise AuthError("Gmail authentication failed.", details=str(e)) from e
        logger.debug("Initial access token validated/acquired.")

    async def _open_logs(
        self, targets: list[Target], total: int, runtime: float
    ) -> ActionLogError | None:
        entry = LogEntry(
            client_action_id=str(uuid.uuid4()),
            estimated_count=total,
            estimated_runtime_seconds=runtime,
            total_estimated_batches=math.ceil(total / self.settings.batch_size),
            query=f"Deleting from {len(targets)} senders",
        )
        self.local_log.create(entry)
        logger.debug(f"Created local action log: {entry.client_action_id}")

        try:
            log_id = await self.durable_log.create(
                {
                    "user_id": self.user_id,
                    "type": OPERATION,
                    "status": "started",
                    "filters": {"sender_count": len(targets), "estimated_count": total},
                    "estimated_emails": total,
                }
            )
        except Exception as e:
            logger.error(f"Failed to create durable action log: {e}", exc_info=True)
            self.local_log.clear()
            return ActionLogError(
                "Failed to log action start.", operation="create", details=str(e)
            )

        self._log_id = log_id
        self.local_log.set_durable_id(log_id)
        logger.debug(
            f"Created durable action log: {log_id}",
            extra={"action_log_id": log_id},
        )
        return None

    def _abort_preparation(self) -> StartResult:
        logger.debug("Cancellation detected before deletion started")
        if not self.state.is_terminal:
            self._set_terminal(RunStatus.CANCELLED)
            self.notifier.info("Deletion Cancelled", "Deletion stopped before it began.")
        return StartResult(accepted=False)

    # --- Background run ------------------------------------------------

    async def _run(self, targets: list[Target], options: DeleteOptions) -> None:
        end_type = EndType.SUCCESS
        error_message: str | None = None

        try:
            for target in targets:
                if self.cancellation.is_cancelled:
                    logger.debug(f"Cancellation detected before processing {target.identifier}")
                    end_type = EndType.USER_STOPPED
                    break

                self._update_state(current_target=target.identifier)
                result = await self.processor.process(target, options.filter_rules)

                if result.outcome is TargetOutcome.CANCELLED:
                    end_type = EndType.USER_STOPPED
                    break
                if result.outcome is TargetOutcome.FAILED:
                    end_type = EndType.RUNTIME_ERROR
                    error_message = result.error
                    self._notify("error", "Deletion error", error_message)
                    break

                if not self.cancellation.is_cancelled:
                    await self._mark_action_taken(target)

        except AuthError as e:
            end_type = EndType.RUNTIME_ERROR
            error_message = e.message
            self._notify(
                "error", "Authentication Required", "Please reconnect your Gmail account."
            )
        except Exception as e:
            logger.error("Critical error during deletion process", exc_info=True)
            end_type = EndType.RUNTIME_ERROR
            error_message = f"An unexpected error occurred: {e}"
            self._notify("error", "Deletion Failed", error_message)

        await self._finish(end_type, error_message, len(targets))

    async def _on_batch(self, target: Target, deleted: int, has_more: bool) -> None:
        self._processed += deleted
        self._batches_completed += 1

        if self.state.is_terminal:
            logger.debug(
                f"Batch for {target.identifier} settled after the run ended",
                extra={"processed_count": self._processed},
            )
            return

        logger.debug(
            f"Batch successful for {target.identifier}. Total deleted so far: {self._processed}",
            extra={"target": target.identifier, "processed_count": self._processed},
        )
        self.reporter.report_batch(self._processed, has_more)
        self.local_log.update_progress(self._batches_completed, self._processed)
        await self._durable_update({"processed_count": self._processed})

    async def _mark_action_taken(self, target: Target) -> None:
        if self.action_registry is None:
            return
        try:
            await self.action_registry.mark_action_taken(target.identifier, OPERATION)
        except Exception as e:
            logger.error(
                f"Failed to mark action taken for {target.identifier}: {e}",
                extra={"target": target.identifier},
            )

    async def _finish(
        self, end_type: EndType, error_message: str | None, sender_count: int
    ) -> None:
        processed = self._processed
        logger.info(
            f"Deletion process finished. End type: {end_type.value}",
            extra={
                "operation": OPERATION,
                "status": end_type.value,
                "processed_count": processed,
                "action_log_id": self._log_id,
            },
        )

        await self._finalize_logs(end_type, processed, error_message)

        if self.state.is_terminal:
            logger.debug("Run was already finalized by cancel()")
            return

        state = self.state
        self._set_terminal(
            end_type.run_status,
            error=error_message,
            processed_count=processed,
            progress_percent=100
            if end_type is EndType.SUCCESS
            else state.progress_percent,
        )

        if end_type is EndType.SUCCESS:
            self._notify(
                "success",
                "Deletion Complete",
                f"Successfully deleted {processed:,} emails from {sender_count} sender(s).",
            )
        elif end_type is EndType.USER_STOPPED:
            self._notify(
                "info", "Deletion Cancelled", f"Deletion stopped after {processed:,} emails."
            )

    # --- Cancellation ----------------------------------------------------

    async def cancel(self) -> None:
        """Stop the active run.

        Idempotent: does nothing when no run is active or the run has
        already begun closing its logs. Otherwise the
        cancelled state is published at once and the logs are closed with
        the count processed so far; the in-flight network call, if any, is
        allowed to settle in the background.
        """
        state = self.state
        if not state.status.is_active:
            logger.debug(f"Cancel ignored in state {state.status.value}")
            return
        if self._log_finalized:
            logger.debug("Cancel ignored, run is already finishing")
            return

        logger.debug("Cancellation requested")
        self.cancellation.request_cancel()
        self.reauth_request = None
        processed = state.processed_count
        self._set_terminal(RunStatus.CANCELLED)
        self._notify(
            "info", "Deletion Cancelled", f"Deletion stopped after {processed:,} emails."
        )

        if self._log_id is not None:
            await self._finalize_logs(EndType.USER_STOPPED, processed)
            logger.debug("Logged cancellation to durable and local logs")

    # --- Helpers ---------------------------------------------------------

    def _update_state(self, **changes: Any) -> None:
        if self.state.is_terminal:
            return
        self.state_store.update(**changes)

    def _set_terminal(self, status: RunStatus, **changes: Any) -> None:
        self.state_store.update(status=status, current_target=None, **changes)

    def _notify(self, level: str, title: str, description: str | None = None) -> None:
        try:
            getattr(self.notifier, level)(title, description)
        except Exception:
            logger.error(f"Failed to deliver {level} notification: {title}", exc_info=True)

    def _on_auth_failure(self, error: AuthError) -> None:
        self._request_reauth(ReauthReason.EXPIRED)

    def _request_reauth(self, reason: ReauthReason) -> None:
        self.reauth_request = ReauthRequest(reason=reason, eta=self.state.eta)
        if self.on_reauth_required is not None:
            self.on_reauth_required(self.reauth_request)

    async def _durable_update(self, patch: dict[str, Any]) -> None:
        async with self._log_lock:
            if self._log_id is None or self._log_finalized:
                return
            try:
                await self.durable_log.update(self._log_id, patch)
            except Exception as e:
                logger.warning(
                    f"Failed to update durable action log: {e}",
                    extra={"action_log_id": self._log_id},
                )

    async def _finalize_logs(
        self, end_type: EndType, processed: int, error: str | None = None
    ) -> None:
        if self._log_finalized:
            return
        self._log_finalized = True

        async with self._log_lock:
            if self._log_id is not None:
                try:
                    await self.durable_log.complete(
                        self._log_id, end_type, processed, error
                    )
                except Exception as e:
                    logger.error(
                        f"Failed to finalize durable action log: {e}",
                        extra={"action_log_id": self._log_id},
                        exc_info=True,
                    )
            try:
                self.local_log.complete(end_type, error)
            except Exception as e:
                logger.error(f"Failed to finalize local action log: {e}")
