"""Tests for proactive token refresh."""

from unittest.mock import MagicMock

import pytest

from mailpurge.core.exceptions import AuthError
from mailpurge.operations.token_guard import TokenGuard

from conftest import FakeTokenProvider


class TestTokenGuard:
    """Test the refresh-or-reuse decision before every batch."""

    @pytest.mark.asyncio
    async def test_uses_lazy_path_when_fresh(self):
        provider = FakeTokenProvider(remaining=600)
        guard = TokenGuard(provider)

        token = await guard.acquire()

        assert token == "token-0"
        assert provider.get_calls == 1
        assert provider.refresh_calls == 0

    @pytest.mark.asyncio
    async def test_forces_refresh_below_two_minutes(self):
        provider = FakeTokenProvider(remaining=119)
        guard = TokenGuard(provider)

        token = await guard.acquire()

        assert token == "token-1"
        assert provider.refresh_calls == 1
        assert provider.get_calls == 0

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self):
        provider = FakeTokenProvider(remaining=120)

        await TokenGuard(provider).acquire()

        assert provider.get_calls == 1
        assert provider.refresh_calls == 0

    @pytest.mark.asyncio
    async def test_no_cached_token_uses_lazy_path(self):
        provider = FakeTokenProvider(remaining=0)
        provider.token = None

        token = await TokenGuard(provider).acquire()

        assert token == "token-0"
        assert provider.get_calls == 1
        assert provider.refresh_calls == 0

    @pytest.mark.asyncio
    async def test_refresh_failure_reports_auth_error(self):
        provider = FakeTokenProvider(remaining=10)
        provider.fail_refresh = True
        on_failure = MagicMock()
        guard = TokenGuard(provider, on_auth_failure=on_failure)

        with pytest.raises(AuthError) as exc_info:
            await guard.acquire()

        assert exc_info.value.message == "Gmail authentication failed during deletion."
        on_failure.assert_called_once_with(exc_info.value)

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_classified(self):
        provider = FakeTokenProvider()

        async def broken():
            raise ConnectionError("offline")

        provider.get_token = broken

        with pytest.raises(AuthError) as exc_info:
            await TokenGuard(provider).acquire()

        assert exc_info.value.details == "offline"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
