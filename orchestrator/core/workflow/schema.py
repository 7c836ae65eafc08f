"""Data model for the workflow engine.

Plans and steps are frozen values: re-planning produces a new
``WorkflowPlan`` instead of editing the active one.
"""

from enum import Enum
from typing import (
    Dict,
    List,
    Optional,
    Tuple,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from orchestrator.core.agents.schema import AgentType


class WorkflowStep(BaseModel):
    """A single delegated task in a workflow plan.

    Attributes:
        agent: The agent that executes this step.
        task: Instructions for the agent.
        depends_on: Indices of steps (0-based, same plan) that must complete first.
    """

    model_config = ConfigDict(frozen=True)

    agent: AgentType = Field(..., description="Agent identifier for this step")
    task: str = Field(..., description="Specific instructions for the agent for this step")
    depends_on: Tuple[int, ...] = Field(
        default=(),
        description="Indices of steps (0-based) that must be completed before this step can start",
    )

    @field_validator("depends_on", mode="before")
    @classmethod
    def _dedupe_dependencies(cls, value):
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            # Left for pydantic to reject as a non-sequence.
            return value
        seen = []
        for index in value:
            if index not in seen:
                seen.append(index)
        return tuple(seen)


class WorkflowPlan(BaseModel):
    """An ordered list of steps plus an iteration cap.

    Attributes:
        steps: Steps in execution order.
        max_iterations: Maximum full scans before execution gives up.
        reasoning: Optional planner explanation.
    """

    model_config = ConfigDict(frozen=True)

    steps: Tuple[WorkflowStep, ...] = Field(default=(), description="Sequence of steps to execute")
    max_iterations: int = Field(default=5, ge=1, description="Maximum iterations before execution stops")
    reasoning: str = Field(default="", description="Brief explanation of the plan")

    def agent_summary(self) -> List[str]:
        """Return the agent identifiers of the steps, in order."""
        return [step.agent.value for step in self.steps]

    def is_simple_default(self) -> bool:
        """Return True for the single-step plan handled by the default agent."""
        return len(self.steps) == 1 and self.steps[0].agent == AgentType.DEFAULT


class AgentOutputMetadata(BaseModel):
    """Self-assessment attached to every agent output."""

    quality_score: Optional[float] = Field(
        default=None, ge=1, le=10, description="Agent's self-assessment of output quality (1-10)"
    )
    needs_revision: bool = Field(
        default=False, description="True if the agent believes its output needs review or revision"
    )
    issues: List[str] = Field(default_factory=list, description="Issues identified if revision is needed")

    @field_validator("issues", mode="before")
    @classmethod
    def _none_issues(cls, value):
        return [] if value is None else value


class AgentOutput(BaseModel):
    """Structured output of one executed step."""

    result: str = Field(..., description="The main output content generated by the agent")
    metadata: AgentOutputMetadata = Field(default_factory=AgentOutputMetadata)


# Completed outputs of the active plan version, keyed by step index.
WorkflowContext = Dict[int, AgentOutput]


class ExecutionStatus(str, Enum):
    """States of the workflow executor."""

    RUNNING = "running"
    STALLED = "stalled"
    EXHAUSTED = "exhausted"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        """Return True for every state except RUNNING."""
        return self is not ExecutionStatus.RUNNING


class ExecutionResult(BaseModel):
    """Outcome of a workflow execution.

    Attributes:
        status: Terminal state the executor stopped in.
        context: Completed outputs of the final plan version.
        final_plan: The plan version active at termination.
        iterations: Number of full scans performed.
        replans: Number of plan replacements installed.
        timed_out: True if the run deadline cut execution short.
    """

    status: ExecutionStatus
    context: Dict[int, AgentOutput] = Field(default_factory=dict)
    final_plan: WorkflowPlan
    iterations: int = 0
    replans: int = 0
    timed_out: bool = False


class OrchestratorResult(BaseModel):
    """Public result of ``Orchestrator.run``.

    Compare ``final_plan.steps`` with ``steps_taken_details`` (or use
    ``is_complete``) to detect a partial run.
    """

    final_result: str
    steps_taken_details: Dict[int, AgentOutput] = Field(default_factory=dict)
    final_plan: WorkflowPlan
    status: ExecutionStatus = ExecutionStatus.COMPLETED
    iterations: int = 0
    replans: int = 0

    @property
    def is_complete(self) -> bool:
        """Return True if every step of the final plan has an output."""
        return all(i in self.steps_taken_details for i in range(len(self.final_plan.steps)))


class OrchestrationContext(BaseModel):
    """Context gathered for a downstream streaming call.

    Attributes:
        target_model_id: Model the caller should use for the final response.
        context_messages: Assistant messages carrying the completed step results.
        plan_summary: Agent identifiers of the final plan.
        final_system_prompt: Optional system prompt override.
    """

    target_model_id: str
    context_messages: List[Dict[str, str]] = Field(default_factory=list)
    plan_summary: List[str] = Field(default_factory=list)
    final_system_prompt: Optional[str] = None
