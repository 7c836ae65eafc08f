"""LLM service backing the planning and step execution capabilities.

Both capabilities go through LangChain's ``ChatOpenAI`` with structured
output, so plans and agent outputs come back as validated pydantic models.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
    Type,
)

from langchain_core.messages import (
    HumanMessage,
    SystemMessage,
)
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from orchestrator.core.agents.schema import AgentConfig
from orchestrator.core.config import settings
from orchestrator.core.logging import logger
from orchestrator.core.workflow.base import (
    PlanningCapability,
    StepExecutionCapability,
)

_ModelKey = Tuple[str, float, Optional[int]]


class LLMService(PlanningCapability, StepExecutionCapability):
    """Chat model access for planning and step execution.

    Chat models are created on first use and cached per
    ``(model, temperature, max_tokens)``.

    Attributes:
        planning_model: Model used for plan generation and re-planning.
        planning_temperature: Sampling temperature for planning calls.
    """

    def __init__(
        self,
        planning_model: Optional[str] = None,
        planning_temperature: float = 0.2,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        """Initialize the LLM service.

        Args:
            planning_model: Planning model, defaults to ``DEFAULT_LLM_MODEL``.
            planning_temperature: Sampling temperature for planning calls.
            api_key: Provider API key, defaults to ``OPENAI_API_KEY``.
            base_url: Optional OpenAI compatible endpoint.
        """
        self.planning_model = planning_model or settings.DEFAULT_LLM_MODEL
        self.planning_temperature = planning_temperature
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._base_url = base_url or settings.OPENAI_API_BASE
        self._models: Dict[_ModelKey, ChatOpenAI] = {}

    def _get_model(self, model: str, temperature: float, max_tokens: Optional[int] = None) -> ChatOpenAI:
        key = (model, temperature, max_tokens)
        if key not in self._models:
            kwargs: Dict[str, Any] = {"model": model, "temperature": temperature, "api_key": self._api_key}
            if max_tokens is not None:
                kwargs["max_tokens"] = max_tokens
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._models[key] = ChatOpenAI(**kwargs)
            logger.debug("llm_model_initialized", model=model, temperature=temperature, max_tokens=max_tokens)
        return self._models[key]

    def _callbacks(self) -> List[Any]:
        if not settings.LANGFUSE_TRACING_ENABLED:
            return []
        from langfuse.langchain import CallbackHandler

        return [CallbackHandler()]

    async def _structured_call(
        self,
        model: ChatOpenAI,
        system_prompt: str,
        prompt: str,
        output_shape: Type[BaseModel],
    ) -> Any:
        structured = model.with_structured_output(output_shape)
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=prompt)]
        return await structured.ainvoke(messages, config={"callbacks": self._callbacks()})

    async def generate(
        self,
        system_instructions: str,
        user_prompt: str,
        output_shape: Type[BaseModel],
    ) -> Any:
        """Generate a structured planning output with the planning model."""
        model = self._get_model(self.planning_model, self.planning_temperature)
        return await self._structured_call(model, system_instructions, user_prompt, output_shape)

    async def execute(
        self,
        endpoint_config: AgentConfig,
        prompt: str,
        output_shape: Type[BaseModel],
    ) -> Any:
        """Run a step prompt with the agent's model settings."""
        model = self._get_model(
            endpoint_config.model,
            endpoint_config.temperature,
            endpoint_config.max_output_tokens,
        )
        return await self._structured_call(model, endpoint_config.system_prompt, prompt, output_shape)


# Global singleton
llm_service = LLMService()
