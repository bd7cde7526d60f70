"""Tests for the per-sender fetch/delete loop."""

from unittest.mock import AsyncMock

import pytest

from mailpurge.core.config import DeleteSettings
from mailpurge.core.exceptions import AuthError, RunawayGuardError
from mailpurge.models.run import Target
from mailpurge.operations.batch_processor import SenderBatchProcessor, TargetOutcome
from mailpurge.operations.cancellation import CancellationCoordinator
from mailpurge.operations.token_guard import TokenGuard

from conftest import FakeStore, FakeTokenProvider


def make_processor(store, provider=None, settings=None, on_batch=None):
    cancellation = CancellationCoordinator()
    processor = SenderBatchProcessor(
        store,
        TokenGuard(provider or FakeTokenProvider()),
        cancellation,
        settings=settings or DeleteSettings(batch_delay=0, small_run_delay=0),
        on_batch=on_batch,
    )
    return processor, cancellation


class TestSenderBatchProcessor:
    """Test the paginated fetch-then-delete loop."""

    @pytest.mark.asyncio
    async def test_deletes_every_page(self):
        store = FakeStore(pages={"a@x.com": [["1", "2"], ["3"]]})
        processor, _ = make_processor(store)

        result = await processor.process(Target("a@x.com", 3))

        assert result.outcome is TargetOutcome.COMPLETED
        assert result.succeeded
        assert result.deleted_count == 3
        assert result.batches == 2
        assert [ids for _, _, ids in store.delete_calls] == [["1", "2"], ["3"]]

    @pytest.mark.asyncio
    async def test_cursor_and_page_size_forwarded(self):
        store = FakeStore(pages={"a@x.com": [["1"], ["2"]]})
        processor, _ = make_processor(store)

        await processor.process(Target("a@x.com", 2))

        assert [call[2] for call in store.fetch_calls] == [None, "1"]
        assert all(call[3] == 1000 for call in store.fetch_calls)

    @pytest.mark.asyncio
    async def test_empty_page_ends_without_delete(self):
        """An empty id list ends the sender with no further delete calls."""
        store = FakeStore(pages={"a@x.com": []})
        processor, _ = make_processor(store)

        result = await processor.process(Target("a@x.com", 5))

        assert result.outcome is TargetOutcome.COMPLETED
        assert result.deleted_count == 0
        assert len(store.fetch_calls) == 1
        assert store.delete_calls == []

    @pytest.mark.asyncio
    async def test_runaway_cursor_stops_after_thirty_pages(self):
        store = FakeStore(endless={"a@x.com"})
        processor, _ = make_processor(store)

        result = await processor.process(Target("a@x.com", 1))

        assert result.outcome is TargetOutcome.FAILED
        assert isinstance(result.exception, RunawayGuardError)
        assert result.error == "Reached maximum processing attempts for a@x.com."
        assert len(store.fetch_calls) == 30
        assert result.deleted_count == 30

    @pytest.mark.asyncio
    async def test_custom_attempt_cap(self):
        store = FakeStore(endless={"a@x.com"})
        processor, _ = make_processor(
            store, settings=DeleteSettings(batch_delay=0, max_fetch_attempts=3)
        )

        result = await processor.process(Target("a@x.com", 1))

        assert len(store.fetch_calls) == 3
        assert result.outcome is TargetOutcome.FAILED

    @pytest.mark.asyncio
    async def test_delete_failure_fails_target(self):
        store = FakeStore(pages={"a@x.com": [["1"], ["2"]]}, fail_delete={"a@x.com": 1})
        processor, _ = make_processor(store)

        result = await processor.process(Target("a@x.com", 2))

        assert result.outcome is TargetOutcome.FAILED
        assert result.deleted_count == 1
        assert result.error == "Failed during batch operation for a@x.com: Quota exceeded"

    @pytest.mark.asyncio
    async def test_fetch_failure_fails_target(self):
        store = FakeStore()
        store.fetch_page = AsyncMock(side_effect=ConnectionError("reset"))
        processor, _ = make_processor(store)

        result = await processor.process(Target("a@x.com", 2))

        assert result.outcome is TargetOutcome.FAILED
        assert result.error == "Failed during batch operation for a@x.com: reset"

    @pytest.mark.asyncio
    async def test_cancelled_before_first_fetch(self):
        store = FakeStore(pages={"a@x.com": [["1"]]})
        processor, cancellation = make_processor(store)
        cancellation.request_cancel()

        result = await processor.process(Target("a@x.com", 1))

        assert result.outcome is TargetOutcome.CANCELLED
        assert store.fetch_calls == []

    @pytest.mark.asyncio
    async def test_cancel_after_fetch_skips_delete(self):
        store = FakeStore(pages={"a@x.com": [["1"]]})
        processor, cancellation = make_processor(store)
        original_fetch = store.fetch_page

        async def fetch_then_cancel(*args):
            page = await original_fetch(*args)
            cancellation.request_cancel()
            return page

        store.fetch_page = fetch_then_cancel

        result = await processor.process(Target("a@x.com", 1))

        assert result.outcome is TargetOutcome.CANCELLED
        assert store.delete_calls == []

    @pytest.mark.asyncio
    async def test_cancel_between_pages(self):
        store = FakeStore(pages={"a@x.com": [["1"], ["2"]]})
        processor, cancellation = make_processor(store)

        async def cancel_after_first(sender, ids):
            cancellation.request_cancel()

        store.after_delete = cancel_after_first

        result = await processor.process(Target("a@x.com", 2))

        assert result.outcome is TargetOutcome.CANCELLED
        assert result.deleted_count == 1
        assert len(store.fetch_calls) == 1

    @pytest.mark.asyncio
    async def test_on_batch_reports_each_page(self):
        store = FakeStore(pages={"a@x.com": [["1", "2"], ["3"]]})
        on_batch = AsyncMock()
        processor, _ = make_processor(store, on_batch=on_batch)
        target = Target("a@x.com", 3)

        await processor.process(target)

        assert [c.args for c in on_batch.await_args_list] == [
            (target, 2, True),
            (target, 1, False),
        ]

    @pytest.mark.asyncio
    async def test_token_failure_propagates(self):
        provider = FakeTokenProvider()
        provider.fail_get = True
        store = FakeStore(pages={"a@x.com": [["1"]]})
        processor, _ = make_processor(store, provider=provider)

        with pytest.raises(AuthError):
            await processor.process(Target("a@x.com", 1))

        assert store.fetch_calls == []

    @pytest.mark.asyncio
    async def test_fresh_credential_each_page(self):
        provider = FakeTokenProvider(remaining=30)
        store = FakeStore(pages={"a@x.com": [["1"], ["2"]]})
        processor, _ = make_processor(store, provider=provider)

        await processor.process(Target("a@x.com", 2))

        assert [call[0] for call in store.fetch_calls] == ["token-1", "token-2"]
