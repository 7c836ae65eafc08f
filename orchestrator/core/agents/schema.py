"""Agent identifiers and per-agent execution settings."""

from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class AgentType(str, Enum):
    """Closed set of agent identifiers a plan step may name."""

    DEFAULT = "default"
    COPYWRITING = "copywriting"
    GOOGLE_ADS = "google-ads"
    FACEBOOK_ADS = "facebook-ads"
    QUIZ = "quiz"
    RESEARCHER = "researcher"
    COPYEDITOR = "copyeditor"


class AgentConfig(BaseModel):
    """Execution parameters for a single agent.

    Attributes:
        model: Model identifier the step execution call is sent to.
        temperature: Sampling temperature.
        max_output_tokens: Upper bound on generated tokens, None for provider default.
        system_prompt: System prompt for the agent.
    """

    model_config = ConfigDict(frozen=True)

    model: str = Field(..., description="Capability endpoint / model identifier")
    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    max_output_tokens: int | None = Field(default=None, gt=0)
    system_prompt: str = Field(default="")
