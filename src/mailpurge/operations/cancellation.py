"""Cooperative cancellation for deletion runs.

A run can be stopped from three independent places: an explicit
``cancel()`` on the controller, an abort token tied to the caller's
lifecycle, and an abort token owned by the job queue. The coordinator folds
them into one latched flag that the batch loop polls between network calls.
"""

import asyncio
import threading
from collections.abc import Callable
from typing import Any

from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

AbortListener = Callable[[], None]


class AbortSignal:
    """A one-shot abort token.

    Once aborted it stays aborted. Listeners run synchronously, in
    registration order, at the moment :meth:`abort` is called.
    """

    def __init__(self) -> None:
        self._aborted = False
        self.reason: str | None = None
        self._listeners: list[AbortListener] = []
        self._event: asyncio.Event | None = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self, reason: str | None = None) -> None:
        if self._aborted:
            return
        self._aborted = True
        self.reason = reason
        if self._event is not None:
            self._event.set()
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.error("Abort listener failed", exc_info=True)

    def add_listener(self, listener: AbortListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: AbortListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def wait(self) -> None:
        """Suspend until the signal is aborted."""
        if self._aborted:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()


# Anything exposing ``aborted`` or ``is_set()`` can act as an abort token
AbortToken = AbortSignal | asyncio.Event | threading.Event


def token_aborted(token: Any) -> bool:
    """Return whether an abort token has fired."""
    if token is None:
        return False
    aborted = getattr(token, "aborted", None)
    if aborted is not None:
        return bool(aborted)
    return bool(token.is_set())


class CancellationCoordinator:
    """Merges cancellation sources into one latched flag."""

    def __init__(self) -> None:
        self._cancelled = False
        self._tokens: list[Any] = []

    def reset(self, *tokens: Any) -> None:
        """Clear the flag for a new run and attach that run's abort tokens."""
        self._cancelled = False
        self._tokens = [t for t in tokens if t is not None]

    def request_cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        if not self._cancelled and any(token_aborted(t) for t in self._tokens):
            self._cancelled = True
            logger.debug("Abort token fired; cancellation latched")
        return self._cancelled
