"""Structural validation of workflow plans."""

from typing import (
    Iterable,
    List,
    Optional,
    Tuple,
)

from orchestrator.core.agents.schema import AgentType
from orchestrator.core.workflow.errors import PlanGenerationError
from orchestrator.core.workflow.schema import WorkflowPlan

MAX_PLAN_STEPS = 5


class PlanValidator:
    """Checks a candidate plan against the plan invariants.

    A valid plan has at least one and at most ``max_steps`` steps, and every
    step names an agent from the known identifier set. Dependency edges are
    not rejected here; unsatisfiable ones end execution in a stall.
    """

    def __init__(self, known_agents: Optional[Iterable[AgentType]] = None, max_steps: int = MAX_PLAN_STEPS):
        """Initialize the validator.

        Args:
            known_agents: Identifiers plans may use. Defaults to every ``AgentType``.
            max_steps: Upper bound on plan length.
        """
        self.known_agents = frozenset(known_agents) if known_agents is not None else frozenset(AgentType)
        self.max_steps = max_steps

    def validate(self, plan: WorkflowPlan) -> WorkflowPlan:
        """Validate ``plan`` and return it unchanged.

        Raises:
            PlanGenerationError: If the plan is empty, too long, or names an unknown agent.
        """
        if not plan.steps:
            raise PlanGenerationError("Generated workflow plan is empty.")
        if len(plan.steps) > self.max_steps:
            raise PlanGenerationError(
                f"Generated workflow plan has {len(plan.steps)} steps, the maximum is {self.max_steps}."
            )
        for step in plan.steps:
            if step.agent not in self.known_agents:
                raise PlanGenerationError(
                    f"Generated plan uses invalid agent type: {getattr(step.agent, 'value', step.agent)}"
                )
        return plan

    def is_valid(self, plan: WorkflowPlan) -> bool:
        """Return True if ``plan`` passes ``validate``."""
        try:
            self.validate(plan)
        except PlanGenerationError:
            return False
        return True

    @staticmethod
    def unsatisfiable_dependencies(plan: WorkflowPlan) -> List[Tuple[int, int]]:
        """List ``(step, dependency)`` edges that can never be satisfied.

        Covers self-dependencies and indices outside the plan. Cycles between
        distinct steps are left to the executor's stall check.
        """
        edges = []
        for index, step in enumerate(plan.steps):
            for dep in step.depends_on:
                if dep == index or dep < 0 or dep >= len(plan.steps):
                    edges.append((index, dep))
        return edges
