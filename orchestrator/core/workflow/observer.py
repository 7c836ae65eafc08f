"""Execution observers for the workflow executor.

The executor reports what happens to an ``ExecutionObserver`` instead of
logging directly. ``LoggingObserver`` is the default and turns every event
into a structured log line.
"""

from typing import (
    Dict,
    List,
    Optional,
    Sequence,
)

from orchestrator.core.config import settings
from orchestrator.core.logging import logger
from orchestrator.core.workflow.schema import (
    AgentOutput,
    ExecutionResult,
    ExecutionStatus,
    WorkflowPlan,
    WorkflowStep,
)


def duration_flags(duration_ms: int) -> Dict[str, bool]:
    """Classify a duration against the slow and important thresholds."""
    return {
        "slow": duration_ms > settings.SLOW_OPERATION_MS,
        "important": duration_ms > settings.IMPORTANT_OPERATION_MS,
    }


class ExecutionObserver:
    """No-op base class; override the hooks you need."""

    def on_execution_started(self, plan: WorkflowPlan) -> None:
        """Execution of ``plan`` is about to start."""

    def on_iteration_started(self, iteration: int, plan: WorkflowPlan) -> None:
        """A scan over ``plan`` is starting. ``iteration`` is 0-based."""

    def on_step_waiting(self, index: int, step: WorkflowStep, missing: Sequence[int]) -> None:
        """A step was skipped because dependencies in ``missing`` are not complete."""

    def on_step_started(self, index: int, step: WorkflowStep) -> None:
        """A step is being invoked."""

    def on_step_completed(self, index: int, step: WorkflowStep, output: AgentOutput, duration_ms: int) -> None:
        """A step produced an output."""

    def on_step_failed(self, index: int, step: WorkflowStep, error: Exception, duration_ms: int) -> None:
        """A step invocation failed; the step stays incomplete."""

    def on_revision_requested(self, index: int, step: WorkflowStep, issues: List[str]) -> None:
        """A step output asked for revision."""

    def on_plan_replaced(self, old_plan: WorkflowPlan, new_plan: WorkflowPlan, duration_ms: int) -> None:
        """A new plan version was installed and the context was cleared."""

    def on_replan_failed(self, index: int, error: Exception, duration_ms: int) -> None:
        """Re-planning failed; the flagged output is kept."""

    def on_replan_skipped(self, index: int, replans: int) -> None:
        """Re-planning was not attempted because the replan limit was reached."""

    def on_iteration_finished(self, iteration: int, made_progress: bool, completed: int, total: int) -> None:
        """A full scan finished without a plan replacement."""

    def on_deadline_exceeded(self, iteration: int, completed: int, total: int) -> None:
        """The run deadline passed during a scan."""

    def on_execution_finished(self, result: ExecutionResult, duration_ms: int) -> None:
        """Execution reached a terminal state."""


class LoggingObserver(ExecutionObserver):
    """Logs executor events through the shared structured logger."""

    def __init__(self, run_id: Optional[str] = None):
        """Initialize the observer.

        Args:
            run_id: Optional identifier bound to every log line.
        """
        self._log = logger.bind(run_id=run_id) if run_id else logger

    def on_execution_started(self, plan: WorkflowPlan) -> None:
        self._log.info(
            "workflow_execution_started",
            step_count=len(plan.steps),
            agents=plan.agent_summary(),
            max_iterations=plan.max_iterations,
        )

    def on_iteration_started(self, iteration: int, plan: WorkflowPlan) -> None:
        self._log.info("workflow_iteration_started", iteration=iteration + 1, max_iterations=plan.max_iterations)

    def on_step_waiting(self, index: int, step: WorkflowStep, missing: Sequence[int]) -> None:
        self._log.debug("workflow_step_dependencies_not_met", step=index, agent=step.agent.value, missing=list(missing))

    def on_step_started(self, index: int, step: WorkflowStep) -> None:
        self._log.info("workflow_step_started", step=index, agent=step.agent.value, task=step.task[:200])

    def on_step_completed(self, index: int, step: WorkflowStep, output: AgentOutput, duration_ms: int) -> None:
        flags = duration_flags(duration_ms)
        log = self._log.warning if flags["slow"] else self._log.info
        log(
            "workflow_step_completed",
            step=index,
            agent=step.agent.value,
            duration_ms=duration_ms,
            output_length=len(output.result),
            quality_score=output.metadata.quality_score,
            needs_revision=output.metadata.needs_revision,
            **flags,
        )

    def on_step_failed(self, index: int, step: WorkflowStep, error: Exception, duration_ms: int) -> None:
        self._log.error(
            "workflow_step_failed",
            step=index,
            agent=step.agent.value,
            duration_ms=duration_ms,
            error=str(error),
            important=True,
        )

    def on_revision_requested(self, index: int, step: WorkflowStep, issues: List[str]) -> None:
        self._log.warning(
            "workflow_step_revision_requested",
            step=index,
            agent=step.agent.value,
            issues=issues,
            important=True,
        )

    def on_plan_replaced(self, old_plan: WorkflowPlan, new_plan: WorkflowPlan, duration_ms: int) -> None:
        self._log.warning(
            "workflow_plan_replaced",
            old_agents=old_plan.agent_summary(),
            new_agents=new_plan.agent_summary(),
            new_step_count=len(new_plan.steps),
            duration_ms=duration_ms,
        )

    def on_replan_failed(self, index: int, error: Exception, duration_ms: int) -> None:
        self._log.error(
            "workflow_replanning_failed",
            step=index,
            duration_ms=duration_ms,
            error=str(error),
            important=True,
        )

    def on_replan_skipped(self, index: int, replans: int) -> None:
        self._log.warning("workflow_replan_limit_reached", step=index, replans=replans)

    def on_iteration_finished(self, iteration: int, made_progress: bool, completed: int, total: int) -> None:
        log = self._log.info if made_progress else self._log.warning
        log(
            "workflow_iteration_finished",
            iteration=iteration + 1,
            made_progress=made_progress,
            completed=completed,
            total=total,
        )

    def on_deadline_exceeded(self, iteration: int, completed: int, total: int) -> None:
        self._log.warning(
            "workflow_deadline_exceeded",
            iteration=iteration + 1,
            completed=completed,
            total=total,
            important=True,
        )

    def on_execution_finished(self, result: ExecutionResult, duration_ms: int) -> None:
        flags = duration_flags(duration_ms)
        log = self._log.info if result.status == ExecutionStatus.COMPLETED else self._log.warning
        log(
            "workflow_execution_finished",
            status=result.status.value,
            iterations=result.iterations,
            replans=result.replans,
            completed=len(result.context),
            total=len(result.final_plan.steps),
            timed_out=result.timed_out,
            duration_ms=duration_ms,
            **flags,
        )
