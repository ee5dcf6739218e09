"""
Unit tests for runner_common.models.

Tests the lifecycle state mapping, operation effects and control command
decoding, including malformed wire messages.
"""

import pytest

from runner_common.errors import ControlChannelError, UnknownState
from runner_common.models import ControlCommand, Operation, RunnerState


class TestRunnerState:
    """Test suite for RunnerState."""

    @pytest.mark.parametrize(
        "status,expected",
        [
            ("created", RunnerState.CREATED),
            ("running", RunnerState.RUNNING),
            ("restarting", RunnerState.RESTARTING),
            ("exited", RunnerState.EXITED),
            ("paused", RunnerState.PAUSED),
            ("dead", RunnerState.DEAD),
        ],
    )
    def test_from_status(self, status, expected):
        """Test that every runtime status maps to its state."""
        assert RunnerState.from_status(status) is expected

    @pytest.mark.parametrize("status", ["removing", "Running", "", "unknown"])
    def test_from_status_unknown(self, status):
        """Test that unrecognized statuses raise UnknownState."""
        with pytest.raises(UnknownState) as exc_info:
            RunnerState.from_status(status)
        assert exc_info.value.status == status

    def test_observed_only(self):
        """Test that only Restarting and Dead are observed-only."""
        observed = {s for s in RunnerState if s.observed_only}
        assert observed == {RunnerState.RESTARTING, RunnerState.DEAD}

    def test_str_is_value(self):
        """Test that states print as their names used in logs."""
        assert str(RunnerState.NON_EXIST) == "NonExist"
        assert f"{RunnerState.RUNNING}" == "Running"


class TestOperation:
    """Test suite for Operation effects."""

    def test_effects(self):
        """Test the state each operation leaves the container in."""
        assert Operation.CREATE.effect is RunnerState.CREATED
        assert Operation.START.effect is RunnerState.RUNNING
        assert Operation.STOP.effect is RunnerState.EXITED
        assert Operation.PAUSE.effect is RunnerState.PAUSED
        assert Operation.UNPAUSE.effect is RunnerState.RUNNING
        assert Operation.REMOVE.effect is RunnerState.NON_EXIST


class TestControlCommand:
    """Test suite for ControlCommand decoding."""

    def test_target_states(self):
        """Test the target each command requests."""
        assert ControlCommand.START.target_state is RunnerState.RUNNING
        assert ControlCommand.STOP.target_state is RunnerState.EXITED
        assert ControlCommand.REMOVE.target_state is RunnerState.NON_EXIST
        assert ControlCommand.QUIT.target_state is None
        assert ControlCommand.INVALID.target_state is None

    @pytest.mark.parametrize(
        "payload,expected",
        [
            (b'"Start"', ControlCommand.START),
            ('"Stop"', ControlCommand.STOP),
            (b'{"command": "Remove"}', ControlCommand.REMOVE),
            ({"command": "Quit"}, ControlCommand.QUIT),
            (b'"Start"\x00\x00\x00', ControlCommand.START),
            (b'  "Stop"\n', ControlCommand.STOP),
        ],
    )
    def test_decode_valid(self, payload, expected):
        """Test decoding each accepted message form."""
        assert ControlCommand.decode(payload) is expected

    @pytest.mark.parametrize(
        "payload",
        [
            b"",
            b"Start",
            b'"start"',
            b'"Invalid"',
            b'{"cmd": "Start"}',
            b'{"command": 1}',
            b"[1, 2]",
            b"not json at all",
            {"command": None},
        ],
    )
    def test_decode_invalid(self, payload):
        """Test that malformed or unknown messages decode to INVALID."""
        assert ControlCommand.decode(payload) is ControlCommand.INVALID

    def test_decode_non_utf8(self):
        """Test that undecodable bytes raise ControlChannelError."""
        with pytest.raises(ControlChannelError):
            ControlCommand.decode(b"\xff\xfe\xfa")

    def test_from_tag_rejects_invalid_tag(self):
        """Test that the Invalid tag itself is not accepted from the wire."""
        assert ControlCommand.from_tag("Invalid") is ControlCommand.INVALID
        assert ControlCommand.from_tag(None) is ControlCommand.INVALID
