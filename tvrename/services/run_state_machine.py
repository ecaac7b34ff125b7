"""Run state machine for rename/verify runs.

Centralizes the order in which a run moves through its steps and rejects
transitions that skip or repeat one.
"""

import logging
from enum import Enum

from tvrename.core.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    INIT = "init"
    VALIDATE_FOLDER = "validate_folder"
    CHECK_VERIFIED = "check_verified"
    RESOLVE_IDENTITY = "resolve_identity"
    ACQUIRE_REFERENCE = "acquire_reference"
    LOAD_REFERENCE = "load_reference"
    CLASSIFY = "classify"
    PROCESS_FILES = "process_files"
    FINALIZE = "finalize"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_ABORT = {RunState.FAILED, RunState.CANCELLED}


class RunStateMachine:
    """Tracks and validates the state of one run."""

    # Define valid state transitions
    VALID_TRANSITIONS = {
        RunState.INIT: {RunState.VALIDATE_FOLDER} | _ABORT,
        RunState.VALIDATE_FOLDER: {RunState.CHECK_VERIFIED} | _ABORT,
        # an existing verification marker ends the run successfully
        RunState.CHECK_VERIFIED: {RunState.RESOLVE_IDENTITY, RunState.COMPLETED} | _ABORT,
        RunState.RESOLVE_IDENTITY: {RunState.ACQUIRE_REFERENCE} | _ABORT,
        RunState.ACQUIRE_REFERENCE: {RunState.LOAD_REFERENCE} | _ABORT,
        RunState.LOAD_REFERENCE: {RunState.CLASSIFY} | _ABORT,
        RunState.CLASSIFY: {RunState.PROCESS_FILES} | _ABORT,
        RunState.PROCESS_FILES: {RunState.FINALIZE} | _ABORT,
        RunState.FINALIZE: {RunState.COMPLETED} | _ABORT,
        RunState.COMPLETED: set(),  # Terminal state
        RunState.FAILED: set(),  # Terminal state
        RunState.CANCELLED: set(),  # Terminal state
    }

    def __init__(self, initial: RunState = RunState.INIT):
        self.state = initial
        self.error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return not self.VALID_TRANSITIONS[self.state]

    def can_transition(self, from_state: RunState, to_state: RunState) -> bool:
        """Validate if state transition is allowed."""
        return to_state in self.VALID_TRANSITIONS.get(from_state, set())

    def transition(self, to_state: RunState, error_message: str | None = None) -> None:
        """Move to ``to_state``.

        Args:
            to_state: Target state
            error_message: Reason, when moving to FAILED

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        from_state = self.state
        if not self.can_transition(from_state, to_state):
            raise InvalidTransitionError(
                f"Invalid state transition: {from_state.value} -> {to_state.value}"
            )

        logger.debug(f"Run state transition: {from_state.value} -> {to_state.value}")
        self.state = to_state

        if to_state == RunState.FAILED and error_message:
            self.error_message = error_message

    def fail(self, error_message: str) -> None:
        """Convenience method to transition to FAILED state."""
        self.transition(RunState.FAILED, error_message=error_message)

    def get_next_states(self, current_state: RunState) -> set[RunState]:
        """Get valid next states from current state."""
        return self.VALID_TRANSITIONS.get(current_state, set())
