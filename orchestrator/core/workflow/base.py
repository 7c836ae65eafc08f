"""Capability interfaces consumed by the workflow engine."""

from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Type,
)

from pydantic import BaseModel

from orchestrator.core.agents.base import AgentConfigProvider
from orchestrator.core.agents.schema import AgentConfig


class PlanningCapability(ABC):
    """Turns instructions and a prompt into a structured value.

    Used by the plan generator and the revision planner.
    """

    @abstractmethod
    async def generate(
        self,
        system_instructions: str,
        user_prompt: str,
        output_shape: Type[BaseModel],
    ) -> Any:
        """Produce a value conforming to ``output_shape``.

        Args:
            system_instructions: System prompt for the planning model.
            user_prompt: The planning request.
            output_shape: Pydantic model describing the expected output.

        Returns:
            An ``output_shape`` instance, a dict, or JSON text.

        Raises:
            Exception: Any provider failure.
        """


class StepExecutionCapability(ABC):
    """Executes one step's prompt against an agent endpoint."""

    @abstractmethod
    async def execute(
        self,
        endpoint_config: AgentConfig,
        prompt: str,
        output_shape: Type[BaseModel],
    ) -> Any:
        """Run the prompt with the agent's model settings.

        Args:
            endpoint_config: Model, temperature, token budget and system prompt.
            prompt: The task prompt.
            output_shape: Pydantic model describing the expected output.

        Returns:
            An ``output_shape`` instance, a dict, or JSON text.

        Raises:
            Exception: Any provider failure.
        """


__all__ = [
    "AgentConfigProvider",
    "PlanningCapability",
    "StepExecutionCapability",
]
