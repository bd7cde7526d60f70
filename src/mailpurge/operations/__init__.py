"""Deletion orchestration for mailpurge."""

from mailpurge.operations.batch_processor import (
    SenderBatchProcessor,
    TargetOutcome,
    TargetResult,
)
from mailpurge.operations.cancellation import (
    AbortSignal,
    CancellationCoordinator,
    token_aborted,
)
from mailpurge.operations.controller import DeleteController, RunHandle, StartResult
from mailpurge.operations.progress import (
    ProgressReporter,
    RunStateStore,
    compute_progress_percent,
)
from mailpurge.operations.query import build_query
from mailpurge.operations.queue import (
    DELETE_JOB_TYPE,
    JobRunner,
    JobStatus,
    QueueAdapter,
    QueuedJob,
)
from mailpurge.operations.token_guard import TokenGuard

# Generic aliases
OperationController = DeleteController
BatchProcessor = SenderBatchProcessor

__all__ = [
    "AbortSignal",
    "BatchProcessor",
    "CancellationCoordinator",
    "DELETE_JOB_TYPE",
    "DeleteController",
    "JobRunner",
    "JobStatus",
    "OperationController",
    "ProgressReporter",
    "QueueAdapter",
    "QueuedJob",
    "RunHandle",
    "RunStateStore",
    "SenderBatchProcessor",
    "StartResult",
    "TargetOutcome",
    "TargetResult",
    "TokenGuard",
    "build_query",
    "compute_progress_percent",
    "token_aborted",
]
