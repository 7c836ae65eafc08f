"""Executes a single workflow step against its agent."""

from typing import (
    Mapping,
    Optional,
)

from orchestrator.core.agents.base import AgentConfigProvider
from orchestrator.core.agents.registry import agent_registry
from orchestrator.core.config import settings
from orchestrator.core.logging import logger
from orchestrator.core.workflow.base import StepExecutionCapability
from orchestrator.core.workflow.errors import StepExecutionError
from orchestrator.core.workflow.parsing import coerce_output
from orchestrator.core.workflow.schema import (
    AgentOutput,
    WorkflowStep,
)


def build_step_prompt(step: WorkflowStep, prior_context: Mapping[int, AgentOutput], original_request: str) -> str:
    """Build the task prompt from the request, dependency outputs and the step's task.

    Only dependencies of ``step`` present in ``prior_context`` are included,
    in the order the step lists them.
    """
    prompt = f'Initial Request: "{original_request}"\n'
    satisfied = [dep for dep in step.depends_on if dep in prior_context]
    if satisfied:
        prompt += "\nRelevant previous step results:\n"
        for dep in satisfied:
            prompt += f"--- Output from Step {dep} ---\n{prior_context[dep].result}\n\n"
    return f"{prompt}\n\nYour Task: {step.task}"


class AgentInvoker:
    """Runs one step through the step execution capability.

    Attributes:
        execution_capability: Capability performing the agent call.
        config_provider: Resolves the step's agent to model settings.
        max_retries: Retries after the first failed call.
    """

    def __init__(
        self,
        execution_capability: Optional[StepExecutionCapability] = None,
        config_provider: Optional[AgentConfigProvider] = None,
        max_retries: Optional[int] = None,
    ):
        """Initialize the AgentInvoker."""
        if execution_capability is None:
            from orchestrator.services.llm import llm_service

            execution_capability = llm_service
        self.execution_capability = execution_capability
        self.config_provider = config_provider or agent_registry
        self.max_retries = settings.STEP_EXECUTION_RETRIES if max_retries is None else max_retries

    async def invoke(
        self,
        step: WorkflowStep,
        prior_context: Mapping[int, AgentOutput],
        original_request: str,
        step_index: Optional[int] = None,
    ) -> AgentOutput:
        """Execute ``step`` and return its structured output.

        Args:
            step: The step to execute.
            prior_context: Completed outputs, at least those ``step`` depends on.
            original_request: The user's request.
            step_index: Index of the step in its plan, for error reporting.

        Returns:
            AgentOutput: The agent's result and self-assessment.

        Raises:
            StepExecutionError: If the agent is unknown or misconfigured, or every attempt failed.
        """
        agent = step.agent.value
        try:
            config = self.config_provider.resolve(step.agent)
        except Exception as e:
            raise StepExecutionError(
                f"Agent configuration for type {agent} is invalid: {e}", step_index=step_index, agent=agent
            ) from e
        if config is None:
            raise StepExecutionError(
                f"Agent configuration not found for type: {agent}", step_index=step_index, agent=agent
            )

        prompt = build_step_prompt(step, prior_context, original_request)
        logger.debug(
            "workflow_step_prompt",
            step=step_index,
            agent=agent,
            model=config.model,
            prompt=prompt,
        )

        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                raw = await self.execution_capability.execute(config, prompt, AgentOutput)
                return coerce_output(raw, AgentOutput)
            except Exception as e:
                last_error = e
                logger.warning(
                    "workflow_step_attempt_failed",
                    step=step_index,
                    agent=agent,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e),
                )

        raise StepExecutionError(
            f"Step {step_index} ({agent}) failed after {attempts} attempts: {last_error}",
            step_index=step_index,
            agent=agent,
        ) from last_error
