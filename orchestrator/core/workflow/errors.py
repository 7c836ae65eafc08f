"""Exceptions raised by the workflow engine.

Only ``PlanGenerationError`` escapes ``Orchestrator.run``. Step and
re-planning failures are handled inside the executor, and stalls or
iteration exhaustion are terminal states rather than exceptions.
"""

from typing import Optional


class OrchestrationError(Exception):
    """Base class for workflow engine errors."""


class PlanGenerationError(OrchestrationError):
    """Raised when no valid plan could be produced. Fatal to the run."""


class StepExecutionError(OrchestrationError):
    """Raised when a single step could not be executed.

    Attributes:
        step_index: Index of the failed step in its plan, if known.
        agent: Agent identifier of the failed step, if known.
    """

    def __init__(self, message: str, step_index: Optional[int] = None, agent: Optional[str] = None):
        """Initialize the error with optional step coordinates."""
        super().__init__(message)
        self.step_index = step_index
        self.agent = agent


class ReplanningError(OrchestrationError):
    """Raised when a replacement plan could not be produced."""
