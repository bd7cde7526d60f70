from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from mailpurge.core.config import DeleteSettings
from mailpurge.core.exceptions import ApiError, AuthError
from mailpurge.core.interfaces import MessagePage
from mailpurge.models.run import EndType
from mailpurge.operations.controller import DeleteController
from mailpurge.storage.action_log import LocalActionLog


def sender_from_query(query: str) -> str:
    """Pull the sender back out of a ``from:"..."`` query."""
    return query.split('"')[1]


class FakeStore:
    """In-memory message store.

    ``pages`` maps a sender to the pages of ids its query returns, in cursor
    order. Senders in ``endless`` return a full page and a cursor forever.
    ``fail_delete`` maps a sender to the (0-based) delete call that fails.
    """

    def __init__(
        self,
        pages: dict[str, list[list[str]]] | None = None,
        endless: set[str] | None = None,
        fail_delete: dict[str, int] | None = None,
        ready: bool = True,
    ):
        self.pages = pages or {}
        self.endless = endless or set()
        self.fail_delete = fail_delete or {}
        self.ready = ready
        self.fetch_calls: list[tuple[str, str, str | None, int]] = []
        self.delete_calls: list[tuple[str, str, list[str]]] = []
        self.after_delete: Callable[[str, list[str]], Awaitable[None]] | None = None
        self._current: str | None = None
        self._deletes_per_sender: dict[str, int] = {}

    def is_ready(self) -> bool:
        return self.ready

    async def fetch_page(
        self, credential: str, query: str, cursor: str | None, page_size: int
    ) -> MessagePage:
        self.fetch_calls.append((credential, query, cursor, page_size))
        sender = sender_from_query(query)
        self._current = sender
        index = int(cursor) if cursor else 0

        if sender in self.endless:
            return MessagePage(ids=[f"{sender}-{index}"], next_cursor=str(index + 1))

        sender_pages = self.pages.get(sender, [])
        if index >= len(sender_pages):
            return MessagePage(ids=[], next_cursor=None)
        next_cursor = str(index + 1) if index + 1 < len(sender_pages) else None
        return MessagePage(ids=list(sender_pages[index]), next_cursor=next_cursor)

    async def delete_batch(self, credential: str, ids: list[str]) -> None:
        sender = self._current or ""
        call_no = self._deletes_per_sender.get(sender, 0)
        self._deletes_per_sender[sender] = call_no + 1
        self.delete_calls.append((credential, sender, list(ids)))
        if self.fail_delete.get(sender) == call_no:
            raise ApiError("Quota exceeded", status_code=403, endpoint="messages/batchDelete")
        if self.after_delete is not None:
            await self.after_delete(sender, list(ids))

    def calls_for(self, sender: str) -> int:
        return sum(1 for _, q, _, _ in self.fetch_calls if sender_from_query(q) == sender)


class FakeTokenProvider:
    """Token provider with a controllable remaining lifetime."""

    def __init__(self, remaining: float = 3600.0, refresh_token: bool = True):
        self.remaining = remaining
        self.refresh_token = refresh_token
        self.token: str | None = "token-0"
        self.get_calls = 0
        self.refresh_calls = 0
        self.fail_get = False
        self.fail_refresh = False

    def has_refresh_token(self) -> bool:
        return self.refresh_token

    def peek(self) -> str | None:
        return self.token

    def time_remaining(self) -> float:
        return self.remaining

    async def get_token(self) -> str:
        self.get_calls += 1
        if self.fail_get:
            raise AuthError("Token expired")
        return self.token or "token-0"

    async def force_refresh(self) -> str:
        self.refresh_calls += 1
        if self.fail_refresh:
            raise AuthError("Refresh rejected")
        self.token = f"token-{self.refresh_calls}"
        return self.token


class InMemoryDurableLog:
    """Durable log double recording every call."""

    def __init__(self, fail_create: bool = False):
        self.fail_create = fail_create
        self.documents: dict[str, dict[str, Any]] = {}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.completions: list[tuple[str, EndType, int, str | None]] = []

    async def create(self, payload: dict[str, Any]) -> str:
        if self.fail_create:
            raise ConnectionError("log service unavailable")
        log_id = f"log-{len(self.documents) + 1}"
        self.documents[log_id] = dict(payload)
        return log_id

    async def update(self, log_id: str, patch: dict[str, Any]) -> None:
        self.updates.append((log_id, dict(patch)))
        self.documents[log_id].update(patch)

    async def complete(
        self, log_id: str, end_type: EndType, processed_count: int, error: str | None = None
    ) -> None:
        self.completions.append((log_id, end_type, processed_count, error))


@pytest.fixture
def fast_settings():
    """Settings with every delay removed."""
    return DeleteSettings(batch_delay=0, small_run_delay=0)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def durable_log():
    return InMemoryDurableLog()


@pytest.fixture
def local_log():
    return LocalActionLog()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def make_controller(fake_store, token_provider, durable_log, local_log, notifier, fast_settings):
    """Factory building a controller wired to the fakes."""

    def _make(**overrides: Any) -> DeleteController:
        kwargs: dict[str, Any] = {
            "user_id": "user-1",
            "notifier": notifier,
            "settings": fast_settings,
        }
        kwargs.update(overrides)
        return DeleteController(
            kwargs.pop("store", fake_store),
            kwargs.pop("token_provider", token_provider),
            kwargs.pop("durable_log", durable_log),
            kwargs.pop("local_log", local_log),
            **kwargs,
        )

    return _make
