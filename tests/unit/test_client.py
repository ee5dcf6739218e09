"""
Unit tests for runner_client.

Tests the HTTP client functions with requests mocked out, and the runnerctl
commands through click's CliRunner.
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests
from click.testing import CliRunner

from runner_client.cli import cli
from runner_client.client import (
    DEFAULT_CONTROL_URL,
    get_control_url,
    get_state,
    send_command,
)

STATE = {
    "identity": "sys.cache",
    "image": "redis:7",
    "current_state": "Exited",
    "target_state": "Running",
}


def ok_response(payload: dict) -> Mock:
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestGetControlUrl:
    """Test suite for control URL resolution."""

    def test_cli_argument_wins(self, monkeypatch):
        """Test that an explicit URL overrides the environment."""
        monkeypatch.setenv("RUNNER_CONTROL_URL", "http://env:1")
        assert get_control_url("http://cli:2/") == "http://cli:2"

    def test_environment(self, monkeypatch):
        """Test that RUNNER_CONTROL_URL is used when no URL is given."""
        monkeypatch.setenv("RUNNER_CONTROL_URL", "http://env:1/")
        assert get_control_url(None) == "http://env:1"

    def test_default(self, monkeypatch):
        """Test the default URL."""
        monkeypatch.delenv("RUNNER_CONTROL_URL", raising=False)
        assert get_control_url() == DEFAULT_CONTROL_URL


class TestSendCommand:
    """Test suite for send_command."""

    def test_posts_command(self):
        """Test that the command is posted as a JSON object."""
        ack = {"accepted": True, "command": "Start"}
        with patch("runner_client.client.requests.post") as mock_post:
            mock_post.return_value = ok_response(ack)

            assert send_command("Start", "http://runner:8765") == ack

        mock_post.assert_called_once_with(
            "http://runner:8765/control", json={"command": "Start"}, timeout=10
        )

    def test_unknown_command(self):
        """Test that unknown commands are rejected before any request."""
        with patch("runner_client.client.requests.post") as mock_post:
            with pytest.raises(ValueError):
                send_command("Restart")
        mock_post.assert_not_called()

    def test_connection_error(self):
        """Test that network errors are reported as RuntimeError."""
        with patch(
            "runner_client.client.requests.post",
            side_effect=requests.exceptions.ConnectionError("refused"),
        ):
            with pytest.raises(RuntimeError, match="Error sending Stop"):
                send_command("Stop")

    def test_http_error(self):
        """Test that an error status is reported as RuntimeError."""
        response = Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
        with patch("runner_client.client.requests.post", return_value=response):
            with pytest.raises(RuntimeError):
                send_command("Quit")


class TestGetState:
    """Test suite for get_state."""

    def test_returns_snapshot(self):
        """Test fetching the runner's state."""
        with patch("runner_client.client.requests.get") as mock_get:
            mock_get.return_value = ok_response(STATE)

            assert get_state("http://runner:8765") == STATE

        mock_get.assert_called_once_with("http://runner:8765/state", timeout=10)

    def test_connection_error(self):
        """Test that network errors are reported as RuntimeError."""
        with patch(
            "runner_client.client.requests.get",
            side_effect=requests.exceptions.Timeout("timed out"),
        ):
            with pytest.raises(RuntimeError, match="runner state"):
                get_state()


class TestCli:
    """Test suite for the runnerctl commands."""

    @pytest.mark.parametrize(
        "name,command",
        [
            ("start", "Start"),
            ("stop", "Stop"),
            ("remove", "Remove"),
            ("quit", "Quit"),
        ],
    )
    def test_lifecycle_commands(self, name, command):
        """Test that each subcommand sends its control command."""
        with patch("runner_client.cli.send_command") as mock_send:
            mock_send.return_value = {"accepted": True, "command": command}
            result = CliRunner().invoke(cli, ["--url", "http://runner:1", name])

        assert result.exit_code == 0
        assert f"{command} accepted" in result.output
        mock_send.assert_called_once_with(command, "http://runner:1")

    def test_command_failure(self):
        """Test that a failed request exits non-zero."""
        with patch(
            "runner_client.cli.send_command", side_effect=RuntimeError("refused")
        ):
            result = CliRunner().invoke(cli, ["start"])

        assert result.exit_code == 1
        assert "Error: refused" in result.output

    def test_status(self):
        """Test the human-readable status output."""
        with patch("runner_client.cli.get_state", return_value=STATE):
            result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Workload: sys.cache" in result.output
        assert "Current:  Exited" in result.output
        assert "Target:   Running" in result.output

    def test_status_json(self):
        """Test the JSON status output."""
        with patch("runner_client.cli.get_state", return_value=STATE):
            result = CliRunner().invoke(cli, ["status", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == STATE
