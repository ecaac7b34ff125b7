"""Run orchestration."""

from tvrename.services.orchestrator import PipelineOrchestrator, RunRequest
from tvrename.services.run_state_machine import RunState, RunStateMachine

__all__ = ["PipelineOrchestrator", "RunRequest", "RunState", "RunStateMachine"]
