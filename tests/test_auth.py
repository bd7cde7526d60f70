"""Tests for the credential doctor."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mailpurge.core.auth import doctor
from mailpurge.core.exceptions import ApiError, AuthError

CONFIG = {
    "client_id": "1234-abc.apps.googleusercontent.com",
    "client_secret": "secret",
    "refresh_token": "refresh",
    "token_url": "https://oauth.test/token",
    "api_base_url": "https://gmail.test/users/me",
}


class TestDoctor:
    """Test the doctor check."""

    @pytest.mark.asyncio
    @patch("mailpurge.core.auth.GmailTokenProvider")
    @patch("mailpurge.core.auth.get_env_config")
    async def test_success(self, mock_config, mock_provider_class):
        mock_config.return_value = CONFIG
        provider = MagicMock()
        provider.force_refresh = AsyncMock(return_value="tok")
        mock_provider_class.from_config.return_value = provider

        result = await doctor()

        assert result["success"] is True
        assert result["token_obtained"] is True
        assert result["api_tested"] is False

    @pytest.mark.asyncio
    @patch("mailpurge.core.auth.GmailMessageStore")
    @patch("mailpurge.core.auth.GmailTokenProvider")
    @patch("mailpurge.core.auth.get_env_config")
    async def test_api_check_failure(self, mock_config, mock_provider_class, mock_store_class):
        mock_config.return_value = CONFIG
        provider = MagicMock()
        provider.force_refresh = AsyncMock(return_value="tok")
        mock_provider_class.from_config.return_value = provider
        store = MagicMock()
        store.fetch_page = AsyncMock(side_effect=ApiError("Forbidden", status_code=403))
        mock_store_class.return_value = store

        result = await doctor(test_api=True)

        assert result["success"] is True
        assert result["api_tested"] is True
        assert result["api_status"] == "failed"
        store.fetch_page.assert_awaited_once_with("tok", "in:anywhere", None, 1)

    @pytest.mark.asyncio
    @patch("mailpurge.core.auth.get_env_config")
    async def test_missing_refresh_token(self, mock_config):
        mock_config.return_value = {**CONFIG, "refresh_token": None}

        result = await doctor()

        assert result["success"] is False
        assert "GMAIL_REFRESH_TOKEN" in result["error"]

    @pytest.mark.asyncio
    @patch("mailpurge.core.auth.get_env_config")
    async def test_config_error(self, mock_config):
        mock_config.side_effect = AuthError("Environment variable GMAIL_CLIENT_ID is required")

        result = await doctor()

        assert result["success"] is False
        assert result["token_obtained"] is False
