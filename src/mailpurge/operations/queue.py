"""Job runner and the queue integration for deletion runs.

:class:`JobRunner` owns a registry mapping job-type names to executors.
Components register their executors when they are constructed, so the
runner must exist before them and is handed to them explicitly.

An executor is an async callable ``(payload, on_progress, abort)`` that
always resolves with an :class:`ExecutorResult`; failures are reported in
the result and never raised to the runner.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..core.exceptions import JobStateError
from ..models.run import DeleteJobPayload, ExecutorResult, RunStatus
from ..utils.logging_utils import get_logger
from .cancellation import AbortSignal

if TYPE_CHECKING:
    from .controller import DeleteController

logger = get_logger(__name__)

DELETE_JOB_TYPE = "delete"

JobProgress = Callable[[int, int], None]
Executor = Callable[[Any, JobProgress, AbortSignal], Awaitable[ExecutorResult]]


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.CANCELLED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
}


@dataclass
class QueuedJob:
    """A job submitted to the runner and its live progress."""

    job_id: str
    job_type: str
    payload: Any
    status: JobStatus = JobStatus.PENDING
    processed: int = 0
    total: int = 0
    abort: AbortSignal = field(default_factory=AbortSignal)
    result: ExecutorResult | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def transition(self, to_status: JobStatus) -> None:
        if to_status not in ALLOWED_TRANSITIONS[self.status]:
            raise JobStateError(
                f"Illegal transition: {self.status.value} -> {to_status.value}",
                job_id=self.job_id,
            )
        self.status = to_status

    def record_progress(self, processed: int, total: int) -> None:
        self.processed = processed
        self.total = total


class JobRunner:
    """Registry of named executors plus a sequential job queue."""

    def __init__(self) -> None:
        self._executors: dict[str, Executor] = {}
        self._jobs: dict[str, QueuedJob] = {}
        self._pending: list[str] = []

    def register(self, job_type: str, executor: Executor) -> None:
        if job_type in self._executors:
            logger.warning(f"Replacing executor for job type '{job_type}'")
        self._executors[job_type] = executor
        logger.debug(f"Registered executor for job type '{job_type}'")

    def unregister(self, job_type: str) -> None:
        self._executors.pop(job_type, None)

    def get_executor(self, job_type: str) -> Executor | None:
        return self._executors.get(job_type)

    @property
    def job_types(self) -> list[str]:
        return sorted(self._executors)

    async def run(
        self,
        job_type: str,
        payload: Any,
        on_progress: JobProgress | None = None,
        abort: AbortSignal | None = None,
    ) -> ExecutorResult:
        """Look up ``job_type`` and run its executor to completion.

        Returns a failed result for unknown job types and for executors that
        raise, so callers only ever deal with :class:`ExecutorResult`.
        """
        executor = self._executors.get(job_type)
        if executor is None:
            logger.error(f"No executor registered for job type '{job_type}'")
            return ExecutorResult(
                success=False, error=f"Unknown job type: {job_type}"
            )

        try:
            return await executor(
                payload, on_progress or (lambda processed, total: None), abort or AbortSignal()
            )
        except Exception as e:
            logger.error(
                f"Executor for '{job_type}' raised: {e}",
                extra={"operation": job_type, "status": "failed"},
                exc_info=True,
            )
            return ExecutorResult(success=False, error=str(e) or type(e).__name__)

    def submit(self, job_type: str, payload: Any) -> QueuedJob:
        job = QueuedJob(job_id=str(uuid.uuid4()), job_type=job_type, payload=payload)
        self._jobs[job.job_id] = job
        self._pending.append(job.job_id)
        logger.debug(f"Queued {job_type} job {job.job_id}")
        return job

    def get_job(self, job_id: str) -> QueuedJob:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobStateError("Job not found", job_id=job_id) from None

    def cancel(self, job_id: str) -> QueuedJob:
        """Cancel a pending job, or abort a running one."""
        job = self.get_job(job_id)
        if job.status is JobStatus.PENDING:
            job.transition(JobStatus.CANCELLED)
            self._pending.remove(job_id)
        elif job.status is JobStatus.RUNNING:
            job.abort.abort("cancelled")
        return job

    async def drain(self) -> list[QueuedJob]:
        """Run queued jobs one after another until the queue is empty."""
        finished = []
        while self._pending:
            job = self._jobs[self._pending.pop(0)]
            job.transition(JobStatus.RUNNING)
            job.result = await self.run(
                job.job_type, job.payload, job.record_progress, job.abort
            )
            if job.result.success:
                job.transition(JobStatus.COMPLETED)
            elif job.abort.aborted:
                job.transition(JobStatus.CANCELLED)
            else:
                job.transition(JobStatus.FAILED)
            logger.info(
                f"Job {job.job_id} ({job.job_type}) finished: {job.status.value}",
                extra={"operation": job.job_type, "status": job.status.value},
            )
            finished.append(job)
        return finished


class QueueAdapter:
    """Exposes a :class:`DeleteController` as the ``delete`` job executor."""

    def __init__(self, controller: "DeleteController", runner: JobRunner) -> None:
        self.controller = controller
        self.runner = runner
        runner.register(DELETE_JOB_TYPE, self.execute)

    async def execute(
        self,
        payload: DeleteJobPayload | dict[str, Any],
        on_progress: JobProgress,
        abort: AbortSignal,
    ) -> ExecutorResult:
        """Run one deletion job and resolve with its outcome.

        The abort signal is bridged to :meth:`DeleteController.cancel` and
        detached again on the way out, whatever the outcome.
        """
        cancel_tasks: list[asyncio.Task[None]] = []

        def on_abort() -> None:
            logger.debug("Queue abort signal received, cancelling deletion")
            try:
                cancel_tasks.append(
                    asyncio.get_running_loop().create_task(self.controller.cancel())
                )
            except RuntimeError:
                # Fired from outside the loop; the abort token is still polled
                logger.debug("No running loop for cancel; relying on abort polling")

        abort.add_listener(on_abort)
        try:
            if isinstance(payload, dict):
                payload = DeleteJobPayload.from_dict(payload)

            start = await self.controller.start(
                payload.senders,
                progress_sink=on_progress,
                external_abort=abort,
                options=payload.options,
            )
            if start.accepted and start.handle is not None:
                state = await start.handle.wait()
            else:
                state = self.controller.state
            if cancel_tasks:
                await asyncio.gather(*cancel_tasks)
                state = self.controller.state

            if not start.accepted:
                if start.error is not None:
                    error = start.error.message
                elif state.status is RunStatus.CANCELLED:
                    error = "Operation cancelled by user"
                else:
                    error = "Deletion did not start"
                return ExecutorResult(
                    success=False, processed_count=state.processed_count, error=error
                )

            if state.status is RunStatus.COMPLETED:
                return ExecutorResult(success=True, processed_count=state.processed_count)
            if state.status is RunStatus.CANCELLED:
                error = "Operation cancelled by user"
            else:
                error = state.error or "Unknown error occurred"
            return ExecutorResult(
                success=False, processed_count=state.processed_count, error=error
            )
        except Exception as e:
            logger.error(f"Delete job failed: {e}", exc_info=True)
            return ExecutorResult(
                success=False,
                processed_count=self.controller.state.processed_count,
                error=str(e) or "Unknown error occurred",
            )
        finally:
            abort.remove_listener(on_abort)
