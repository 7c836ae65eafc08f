"""Workflow planner that turns a request into a validated multi-step plan.

The planning model first classifies the request as SIMPLE or COMPLEX. Simple
requests get a single step handled by the ``default`` agent; complex ones get
a plan of up to five steps with explicit dependency edges.
"""

import time
from typing import (
    Any,
    Optional,
)

from orchestrator.core.agents.registry import (
    AgentRegistry,
    agent_registry,
)
from orchestrator.core.agents.schema import AgentType
from orchestrator.core.config import settings
from orchestrator.core.logging import logger
from orchestrator.core.workflow.base import PlanningCapability
from orchestrator.core.workflow.errors import PlanGenerationError
from orchestrator.core.workflow.observer import duration_flags
from orchestrator.core.workflow.parsing import coerce_output
from orchestrator.core.workflow.schema import WorkflowPlan
from orchestrator.core.workflow.validator import PlanValidator

SIMPLE_TASK = "Answer the user query directly using available context and tools."


class BasePlanner:
    """Shared plumbing for components that ask the planning model for a plan.

    Attributes:
        planning_capability: The capability that produces structured plans.
        agents: Registry that defines which agents plans may use.
        validator: Structural plan validator, rebuilt per call from the enabled agents unless one is given.
        max_retries: Retries after the first failed capability call.
    """

    def __init__(
        self,
        planning_capability: Optional[PlanningCapability] = None,
        agents: Optional[AgentRegistry] = None,
        validator: Optional[PlanValidator] = None,
        max_retries: int = 0,
    ):
        """Initialize the planner."""
        if planning_capability is None:
            from orchestrator.services.llm import llm_service

            planning_capability = llm_service
        self.planning_capability = planning_capability
        self.agents = agents or agent_registry
        self._validator = validator
        self.max_retries = max_retries

    @property
    def validator(self) -> PlanValidator:
        if self._validator is not None:
            return self._validator
        return PlanValidator(known_agents=self.agents.known_agents(), max_steps=settings.PLAN_MAX_STEPS)

    async def _call_planning_capability(self, system_prompt: str, prompt: str, operation: str) -> Any:
        """Call the planning capability, retrying failed calls.

        Raises:
            PlanGenerationError: If every attempt failed.
        """
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return await self.planning_capability.generate(system_prompt, prompt, WorkflowPlan)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"{operation}_attempt_failed",
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e),
                )
        raise PlanGenerationError(f"Planning call failed after {attempts} attempts: {last_error}") from last_error

    def _build_plan(self, raw: Any, operation: str) -> WorkflowPlan:
        """Coerce and validate the capability output.

        Raises:
            PlanGenerationError: If the output is not a structurally valid plan.
        """
        try:
            plan = coerce_output(raw, WorkflowPlan)
        except (ValueError, TypeError) as e:
            raise PlanGenerationError(f"Planning output is not a valid workflow plan: {e}") from e

        self.validator.validate(plan)

        unsatisfiable = PlanValidator.unsatisfiable_dependencies(plan)
        if unsatisfiable:
            logger.warning(
                f"{operation}_unsatisfiable_dependencies",
                edges=[{"step": step, "depends_on": dep} for step, dep in unsatisfiable],
            )
        return plan

    async def _request_plan(self, system_prompt: str, prompt: str, operation: str) -> WorkflowPlan:
        """Ask for a plan and return it once validated."""
        logger.debug(f"{operation}_prompt", system_prompt=system_prompt, prompt=prompt)

        start = time.perf_counter()
        raw = await self._call_planning_capability(system_prompt, prompt, operation)
        duration_ms = int((time.perf_counter() - start) * 1000)
        plan = self._build_plan(raw, operation)

        flags = duration_flags(duration_ms)
        log = logger.warning if flags["slow"] else logger.info
        log(
            f"{operation}_completed",
            duration_ms=duration_ms,
            step_count=len(plan.steps),
            agents=plan.agent_summary(),
            max_iterations=plan.max_iterations,
            **flags,
        )
        return plan


class PlanGenerator(BasePlanner):
    """Generates the initial workflow plan for a request."""

    def __init__(
        self,
        planning_capability: Optional[PlanningCapability] = None,
        agents: Optional[AgentRegistry] = None,
        validator: Optional[PlanValidator] = None,
        max_retries: Optional[int] = None,
    ):
        """Initialize the PlanGenerator."""
        super().__init__(
            planning_capability=planning_capability,
            agents=agents,
            validator=validator,
            max_retries=settings.PLAN_GENERATION_RETRIES if max_retries is None else max_retries,
        )

    def _build_planning_prompt(self) -> str:
        """Build the system prompt for plan generation from the currently enabled agents."""
        validator = self.validator
        specialized = self.agents.get_agents_prompt(include_default=False)
        return (
            "You are a highly intelligent workflow manager. Your tasks are:\n"
            "1. Analyze the user request and any user agent hint provided.\n"
            "2. Determine if the request is SIMPLE (can be answered directly by the 'default' agent, "
            "possibly using RAG/tools) or COMPLEX (requires specialized generation or multiple distinct steps).\n"
            "3. Generate a workflow plan based on your determination:\n"
            "    - If SIMPLE (answering questions, researching topics, summarizing info, using tools directly): "
            "create a plan with ONLY ONE step using the 'default' agent (or the user's hinted agent if "
            f'appropriate) with the task: "{SIMPLE_TASK}"\n'
            "    - If COMPLEX (the user explicitly asks for marketing copy, ad campaigns, quizzes, or text "
            f"editing): create a multi-step plan (typically 2-3 steps, max {validator.max_steps}) using the "
            "most appropriate specialized agents.\n"
            "        - Use 'researcher' ONLY if significant external information gathering is clearly needed "
            "as a distinct first step.\n"
            "        - Use 'copyeditor' ONLY when the user explicitly asks for text to be edited or refined, or "
            "a previous generation step requires it.\n"
            "        - Ensure the final step produces the user-facing output.\n"
            "4. Each step must specify: agent, task, and depends_on (0-based indices of earlier steps whose "
            "output it needs). Steps without dependencies may run independently.\n\n"
            "## Available Specialized Agents\n"
            f"{specialized}\n\n"
            "STRONGLY PREFER the single 'default' agent plan unless a specialized generation agent is clearly "
            "and explicitly requested by the user.\n\n"
            "Valid agent names: " + ", ".join(sorted(a.value for a in validator.known_agents))
        )

    def _resolve_hint(self, agent_hint: Optional[AgentType | str]) -> Optional[AgentType]:
        if agent_hint is None:
            return None
        try:
            return AgentType(agent_hint)
        except ValueError as e:
            raise PlanGenerationError(f"Unknown agent hint: {agent_hint}") from e

    async def generate(self, request: str, agent_hint: Optional[AgentType | str] = None) -> WorkflowPlan:
        """Generate a workflow plan for the user's request.

        Args:
            request: The user's request text.
            agent_hint: Optional agent the user or a router suggested.

        Returns:
            WorkflowPlan: The validated plan.

        Raises:
            PlanGenerationError: If the planning call keeps failing or the plan is invalid.
        """
        hint = self._resolve_hint(agent_hint)

        logger.info(
            "workflow_plan_generation_started",
            request_preview=request[:100],
            agent_hint=hint.value if hint else None,
        )

        prompt = (
            f'User Request: "{request}"\n'
            f"User Agent Hint: {hint.value if hint else AgentType.DEFAULT.value}\n\n"
            "Analyze this request and generate the appropriate workflow plan (either single-step simple or "
            "multi-step complex) based on your system instructions. Ensure the plan achieves the user's goal."
        )

        try:
            return await self._request_plan(self._build_planning_prompt(), prompt, "workflow_plan_generation")
        except PlanGenerationError as e:
            logger.error("workflow_plan_generation_failed", error=str(e))
            raise
