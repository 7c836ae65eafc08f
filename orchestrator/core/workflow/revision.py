"""Revision planner that replaces a plan after a step asks for revision."""

import json
from typing import (
    List,
    Optional,
)

from orchestrator.core.agents.registry import AgentRegistry
from orchestrator.core.config import settings
from orchestrator.core.logging import logger
from orchestrator.core.workflow.base import PlanningCapability
from orchestrator.core.workflow.errors import (
    PlanGenerationError,
    ReplanningError,
)
from orchestrator.core.workflow.planner import BasePlanner
from orchestrator.core.workflow.schema import WorkflowPlan
from orchestrator.core.workflow.validator import PlanValidator

RESULT_PREVIEW_CHARS = 200


class RevisionPlanner(BasePlanner):
    """Produces an updated plan from a step's revision feedback.

    The new plan is validated exactly like an initial plan. Any failure is
    reported as ``ReplanningError`` so the executor can keep the flagged
    output and carry on.
    """

    def __init__(
        self,
        planning_capability: Optional[PlanningCapability] = None,
        agents: Optional[AgentRegistry] = None,
        validator: Optional[PlanValidator] = None,
        max_retries: Optional[int] = None,
    ):
        """Initialize the RevisionPlanner."""
        super().__init__(
            planning_capability=planning_capability,
            agents=agents,
            validator=validator,
            max_retries=settings.REPLAN_RETRIES if max_retries is None else max_retries,
        )

    def _build_replan_prompt(self) -> str:
        """Build the system prompt for re-planning from the currently enabled agents."""
        return (
            "You are the workflow manager. Adjust the workflow based on agent feedback. You can modify steps, "
            "add new steps (e.g., a copyeditor step), or re-order tasks. Keep depends_on indices pointing at "
            f"steps of the new plan. Use at most {self.validator.max_steps} steps.\n\n"
            "## Available Agents\n"
            f"{self.agents.get_agents_prompt()}"
        )

    @staticmethod
    def summarize_plan(plan: WorkflowPlan) -> str:
        """Render a compact JSON summary of a plan for the prompt."""
        return json.dumps(
            [
                {"index": i, "agent": s.agent.value, "task": s.task, "depends_on": list(s.depends_on)}
                for i, s in enumerate(plan.steps)
            ]
        )

    async def replan(
        self,
        current_plan: WorkflowPlan,
        triggering_step_index: int,
        issues: List[str],
        original_request: str,
        flagged_result: str = "",
    ) -> WorkflowPlan:
        """Generate a replacement plan.

        Args:
            current_plan: The plan version that is being executed.
            triggering_step_index: Index of the step that asked for revision.
            issues: Issues reported by that step.
            original_request: The user's request the new plan must still satisfy.
            flagged_result: The flagged step output, included as a preview.

        Returns:
            WorkflowPlan: A new, validated plan value.

        Raises:
            ReplanningError: If no valid replacement plan could be produced.
        """
        agent = current_plan.steps[triggering_step_index].agent.value
        preview = flagged_result[:RESULT_PREVIEW_CHARS]
        prompt = (
            f"Step {triggering_step_index} ({agent}) requires revision. "
            f"Issues: {', '.join(issues) if issues else 'None'}. "
            f"Result: {preview}...\n"
            f"Current plan: {self.summarize_plan(current_plan)}\n"
            f"Provide an updated plan (max {self.validator.max_steps} steps) to address the issue for the goal: "
            f'"{original_request}"'
        )

        logger.info(
            "workflow_replanning_started",
            step=triggering_step_index,
            agent=agent,
            issues=issues,
        )

        try:
            return await self._request_plan(self._build_replan_prompt(), prompt, "workflow_replanning")
        except PlanGenerationError as e:
            raise ReplanningError(f"Re-planning failed: {e}") from e
