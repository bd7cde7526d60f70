"""Run state publication and progress/ETA reporting."""

import math
from collections.abc import Callable

from ..core.config import DELETION_BATCH_SIZE
from ..core.interfaces import ProgressSink, RuntimeEstimator
from ..models.run import RunState, RunStatus
from ..utils.estimate import estimate_runtime_seconds, format_duration
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

StateObserver = Callable[[RunState], None]


def compute_progress_percent(processed: int, total: int, has_more: bool) -> int:
    """Normalize progress to 0-100.

    With a known total the ratio is rounded half up and capped at 100. With
    an unknown total we can only say "somewhere in the middle" while pages
    remain, and "done" once the cursor is exhausted.
    """
    if total > 0:
        return min(100, math.floor(processed / total * 100 + 0.5))
    return 50 if has_more else 100


class RunStateStore:
    """Holds the current :class:`RunState` and fans changes out to observers."""

    def __init__(self, initial: RunState | None = None) -> None:
        self._state = initial or RunState()
        self._observers: list[StateObserver] = []

    @property
    def state(self) -> RunState:
        return self._state

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register ``observer``; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def set(self, state: RunState) -> RunState:
        self._state = state
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                logger.error("Run state observer failed", exc_info=True)
        return state

    def update(self, **changes) -> RunState:
        return self.set(self._state.evolve(**changes))


class ProgressReporter:
    """Turns batch completions into state updates and external sink calls."""

    def __init__(
        self,
        store: RunStateStore,
        estimator: RuntimeEstimator = estimate_runtime_seconds,
        batch_size: int = DELETION_BATCH_SIZE,
    ) -> None:
        self.store = store
        self.estimator = estimator
        self.batch_size = batch_size
        self._sink: ProgressSink | None = None

    def begin(self, total: int, sink: ProgressSink | None = None) -> None:
        """Attach the run's external sink and announce the starting point."""
        self._sink = sink
        self.forward(0, total)

    def report_batch(self, processed: int, has_more: bool) -> RunState:
        """Publish cumulative progress after a successful batch.

        Updates are dropped once the run has left ``deleting``, so a batch
        that lands after a cancellation never changes the terminal record.
        """
        state = self.store.state
        if state.status is not RunStatus.DELETING:
            logger.debug(
                f"Dropping progress update in state {state.status.value}",
                extra={"processed_count": processed},
            )
            return state
        if processed < state.processed_count:
            logger.warning(
                f"Ignoring non-monotonic progress {processed} < {state.processed_count}"
            )
            return state

        total = state.total_estimate
        eta = state.eta
        if total > 0:
            remaining = max(0, total - processed)
            eta = format_duration(self.estimator("delete", remaining))

        new_state = self.store.update(
            processed_count=processed,
            progress_percent=compute_progress_percent(processed, total, has_more),
            eta=eta,
        )
        self.forward(processed, total)
        return new_state

    def forward(self, processed: int, total: int) -> None:
        if self._sink is None:
            return
        try:
            self._sink(processed, total)
        except Exception:
            logger.warning("Progress sink failed", exc_info=True)
