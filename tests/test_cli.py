"""Tests for CLI functionality."""

from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from mailpurge.cli.commands import OperationHandler
from mailpurge.cli.main import cli
from mailpurge.core.exceptions import AuthError
from mailpurge.models.run import RunState, RunStatus


class TestCLIMain:
    """Test main CLI functionality."""

    def test_cli_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "bulk delete Gmail messages by sender" in result.output
        assert "doctor" in result.output
        assert "delete" in result.output

    @patch("mailpurge.cli.main.OperationHandler")
    def test_doctor_command(self, mock_handler_class):
        mock_handler = MagicMock()
        mock_handler.handle_doctor.return_value = True
        mock_handler_class.return_value = mock_handler

        result = CliRunner().invoke(cli, ["doctor", "--test-api"])

        assert result.exit_code == 0
        mock_handler.handle_doctor.assert_called_once_with(True)

    @patch("mailpurge.cli.main.OperationHandler")
    def test_doctor_failure_exits_nonzero(self, mock_handler_class):
        mock_handler_class.return_value.handle_doctor.return_value = False

        result = CliRunner().invoke(cli, ["doctor"])

        assert result.exit_code == 1

    @patch("mailpurge.cli.main.OperationHandler")
    def test_delete_command(self, mock_handler_class, tmp_path):
        senders = tmp_path / "senders.csv"
        senders.write_text("email,count\na@x.com,3\n")
        mock_handler_class.return_value.handle_delete.return_value = True

        result = CliRunner().invoke(
            cli, ["delete", str(senders), "--rule", "older_than:1y", "--rule", "is:unread", "-y"]
        )

        assert result.exit_code == 0
        mock_handler_class.return_value.handle_delete.assert_called_once_with(
            senders, ("older_than:1y", "is:unread"), True
        )

    @patch("mailpurge.cli.main.OperationHandler")
    def test_delete_auth_error(self, mock_handler_class, tmp_path):
        senders = tmp_path / "senders.csv"
        senders.write_text("a@x.com\n")
        mock_handler_class.return_value.handle_delete.side_effect = AuthError("Gmail not connected.")

        result = CliRunner().invoke(cli, ["delete", str(senders), "--yes"])

        assert result.exit_code == 1
        assert "Gmail not connected." in result.output

    def test_delete_missing_file(self):
        result = CliRunner().invoke(cli, ["delete", "does-not-exist.csv"])
        assert result.exit_code == 2


class TestOperationHandler:
    """Test the delete handler wiring."""

    @patch("mailpurge.cli.commands.build_controller")
    @patch("mailpurge.cli.commands.get_env_config")
    def test_handle_delete_completed(self, mock_config, mock_build, tmp_path):
        senders = tmp_path / "senders.csv"
        senders.write_text("a@x.com,2\n")
        handler = OperationHandler()

        async def fake_run(controller, targets, options):
            assert [t.identifier for t in targets] == ["a@x.com"]
            assert options.filter_rules == ("older_than:1y",)
            return RunState(status=RunStatus.COMPLETED, processed_count=2)

        with patch.object(handler, "_run_delete", side_effect=fake_run):
            assert handler.handle_delete(senders, ("older_than:1y",), assume_yes=True)

        mock_build.assert_called_once_with(mock_config.return_value)

    @patch("mailpurge.cli.commands.build_controller")
    @patch("mailpurge.cli.commands.get_env_config")
    def test_handle_delete_error(self, mock_config, mock_build, tmp_path):
        senders = tmp_path / "senders.csv"
        senders.write_text("a@x.com,2\n")
        handler = OperationHandler()

        async def fake_run(controller, targets, options):
            return RunState(status=RunStatus.ERROR, error="Quota exceeded")

        with patch.object(handler, "_run_delete", side_effect=fake_run):
            assert not handler.handle_delete(senders, (), assume_yes=True)

    def test_handle_delete_empty_file(self, tmp_path):
        senders = tmp_path / "senders.csv"
        senders.write_text("")

        assert not OperationHandler().handle_delete(senders, (), assume_yes=True)
