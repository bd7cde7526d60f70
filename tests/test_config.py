"""Tests for configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from mailpurge.core.config import DeleteSettings, get_env_config
from mailpurge.core.exceptions import AuthError, ValidationError

GOOD_ENV = {
    "GMAIL_CLIENT_ID": "1234-abc.apps.googleusercontent.com",
    "GMAIL_CLIENT_SECRET": "secret",
    "GMAIL_REFRESH_TOKEN": "refresh",
    "MAILPURGE_USER_ID": "me@example.com",
    "MAILPURGE_DATA_DIR": "/tmp/mailpurge-test",
}


class TestDeleteSettings:
    def test_defaults(self):
        settings = DeleteSettings()
        assert settings.token_refresh_threshold == 120
        assert settings.batch_size == 1000
        assert settings.batch_delay == 0.15
        assert settings.max_fetch_attempts == 30
        assert settings.small_run_threshold == 5

    @pytest.mark.parametrize(
        "kwargs",
        [{"batch_size": 0}, {"batch_size": 1001}, {"max_fetch_attempts": 0}, {"batch_delay": -1}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            DeleteSettings(**kwargs)


class TestGetEnvConfig:
    """Test environment based configuration."""

    @patch("mailpurge.core.config.check_env_file")
    def test_valid_environment(self, mock_check):
        with patch.dict(os.environ, GOOD_ENV, clear=True):
            config = get_env_config()

        assert config["client_id"] == GOOD_ENV["GMAIL_CLIENT_ID"]
        assert config["refresh_token"] == "refresh"
        assert config["user_id"] == "me@example.com"
        assert config["data_dir"] == Path("/tmp/mailpurge-test")
        mock_check.assert_called_once()

    @patch("mailpurge.core.config.check_env_file")
    def test_missing_client_id(self, mock_check):
        env = {k: v for k, v in GOOD_ENV.items() if k != "GMAIL_CLIENT_ID"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(AuthError) as exc_info:
                get_env_config()
        assert "GMAIL_CLIENT_ID" in str(exc_info.value)
        assert exc_info.value.reason == "not_connected"

    @patch("mailpurge.core.config.check_env_file")
    def test_invalid_client_id(self, mock_check):
        with patch.dict(os.environ, {**GOOD_ENV, "GMAIL_CLIENT_ID": "not-google"}, clear=True):
            with pytest.raises(AuthError):
                get_env_config()

    @patch("mailpurge.core.config.check_env_file")
    def test_optional_values(self, mock_check):
        env = {
            "GMAIL_CLIENT_ID": GOOD_ENV["GMAIL_CLIENT_ID"],
            "GMAIL_CLIENT_SECRET": "secret",
        }
        with patch.dict(os.environ, env, clear=True):
            config = get_env_config()

        assert config["refresh_token"] is None
        assert config["user_id"] is None
        assert config["data_dir"] == Path(".mailpurge")
