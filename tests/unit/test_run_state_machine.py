"""Unit tests for RunStateMachine.

Tests transition validation and terminal states.
"""

import pytest

from tvrename.core.errors import InvalidTransitionError
from tvrename.services.run_state_machine import RunState, RunStateMachine

HAPPY_PATH = [
    RunState.VALIDATE_FOLDER,
    RunState.CHECK_VERIFIED,
    RunState.RESOLVE_IDENTITY,
    RunState.ACQUIRE_REFERENCE,
    RunState.LOAD_REFERENCE,
    RunState.CLASSIFY,
    RunState.PROCESS_FILES,
    RunState.FINALIZE,
    RunState.COMPLETED,
]


@pytest.fixture
def state_machine():
    return RunStateMachine()


@pytest.mark.unit
class TestStateTransitionValidation:
    """Test state transition validation logic."""

    def test_happy_path(self, state_machine):
        """Every step of a full run is a valid transition."""
        for state in HAPPY_PATH:
            state_machine.transition(state)

        assert state_machine.state == RunState.COMPLETED
        assert state_machine.is_terminal

    def test_verified_marker_shortcut(self, state_machine):
        """A verified folder completes straight after the marker check."""
        assert state_machine.can_transition(RunState.CHECK_VERIFIED, RunState.COMPLETED)

    def test_can_abort_from_any_non_terminal_state(self, state_machine):
        for state in [RunState.INIT, *HAPPY_PATH[:-1]]:
            assert state_machine.can_transition(state, RunState.FAILED)
            assert state_machine.can_transition(state, RunState.CANCELLED)

    def test_cannot_skip_steps(self, state_machine):
        """Test that skipping a step raises."""
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(RunState.CLASSIFY)
        assert state_machine.state == RunState.INIT

    @pytest.mark.parametrize("terminal", [RunState.COMPLETED, RunState.FAILED, RunState.CANCELLED])
    def test_terminal_states_have_no_exit(self, terminal):
        machine = RunStateMachine(terminal)

        assert machine.is_terminal
        assert machine.get_next_states(terminal) == set()
        with pytest.raises(InvalidTransitionError):
            machine.transition(RunState.FAILED)


@pytest.mark.unit
class TestFail:
    def test_fail_records_message(self, state_machine):
        state_machine.transition(RunState.VALIDATE_FOLDER)

        state_machine.fail("Folder does not exist")

        assert state_machine.state == RunState.FAILED
        assert state_machine.error_message == "Folder does not exist"
