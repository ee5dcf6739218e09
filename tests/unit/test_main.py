"""Unit tests for the runner entrypoint's option handling."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from runner_controller.__main__ import (
    DEFAULT_CONTROL_HOST,
    DEFAULT_CONTROL_PORT,
    get_control_host,
    get_control_port,
    get_monitor_interval,
    main,
    parse_args,
    run_controller,
)
from runner_controller.controller import Runner


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "RUNNER_MONITOR_INTERVAL",
        "RUNNER_CONTROL_HOST",
        "RUNNER_CONTROL_PORT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "workload.json"
    path.write_text(json.dumps({"name": "cache", "app_type": "sys", "image": "redis"}))
    return path


class TestParseArgs:
    """Test suite for command-line parsing."""

    def test_defaults(self):
        """Test option defaults."""
        args = parse_args(["--config", "w.json"])

        assert args.config == "w.json"
        assert args.monitor_interval is None
        assert args.host is None
        assert args.port is None
        assert args.no_control_server is False
        assert args.follow_logs is False
        assert args.log_level == "INFO"
        assert args.log_file is None

    def test_config_required(self):
        """Test that the workload descriptor must be given."""
        with pytest.raises(SystemExit):
            parse_args([])


class TestOptionResolution:
    """Test suite for CLI/environment precedence."""

    def test_monitor_interval_cli(self, monkeypatch):
        """Test that the CLI interval wins over the environment."""
        monkeypatch.setenv("RUNNER_MONITOR_INTERVAL", "9")
        assert get_monitor_interval(parse_args(["-c", "w", "-m", "2.5"])) == 2.5

    def test_monitor_interval_env(self, monkeypatch):
        """Test that the environment interval is used without a CLI value."""
        monkeypatch.setenv("RUNNER_MONITOR_INTERVAL", "3")
        assert get_monitor_interval(parse_args(["-c", "w"])) == 3.0

    @pytest.mark.parametrize("raw", ["abc", "0", "-2"])
    def test_monitor_interval_invalid_env(self, monkeypatch, raw):
        """Test that an invalid environment interval falls back to the config."""
        monkeypatch.setenv("RUNNER_MONITOR_INTERVAL", raw)
        assert get_monitor_interval(parse_args(["-c", "w"])) is None

    def test_monitor_interval_invalid_cli(self):
        """Test that a non-positive CLI interval falls back to the config."""
        assert get_monitor_interval(parse_args(["-c", "w", "-m", "0"])) is None

    def test_control_host(self, monkeypatch):
        """Test bind address precedence."""
        assert get_control_host(parse_args(["-c", "w"])) == DEFAULT_CONTROL_HOST
        monkeypatch.setenv("RUNNER_CONTROL_HOST", "0.0.0.0")
        assert get_control_host(parse_args(["-c", "w"])) == "0.0.0.0"
        assert get_control_host(parse_args(["-c", "w", "--host", "::1"])) == "::1"

    def test_control_port(self, monkeypatch):
        """Test port precedence and fallback on garbage."""
        assert get_control_port(parse_args(["-c", "w"])) == DEFAULT_CONTROL_PORT
        monkeypatch.setenv("RUNNER_CONTROL_PORT", "9000")
        assert get_control_port(parse_args(["-c", "w"])) == 9000
        assert get_control_port(parse_args(["-c", "w", "--port", "9100"])) == 9100
        monkeypatch.setenv("RUNNER_CONTROL_PORT", "nope")
        assert get_control_port(parse_args(["-c", "w"])) == DEFAULT_CONTROL_PORT


class TestEntrypoint:
    """Test suite for running the entrypoint."""

    def test_missing_config_exits_with_error(self, tmp_path):
        """Test that an unreadable descriptor is a fatal error."""
        assert main(["--config", str(tmp_path / "missing.json")]) == 1

    @pytest.mark.asyncio
    async def test_run_controller_without_server(self, config_file, fake_runtime):
        """Test that the runner is built from the descriptor and run."""
        args = parse_args(["-c", str(config_file), "-m", "5", "--no-control-server"])

        with (
            patch(
                "runner_controller.__main__.ContainerManager",
                return_value=fake_runtime,
            ),
            patch.object(Runner, "run", AsyncMock()) as mock_run,
        ):
            await run_controller(args)

        mock_run.assert_awaited_once()
        assert fake_runtime.list_calls == 1
