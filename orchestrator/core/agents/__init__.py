"""Agent profiles used by workflow steps.

This package provides the closed set of agent identifiers and the registry
that resolves them to model, temperature, token budget and system prompt.
"""

from orchestrator.core.agents.base import AgentConfigProvider
from orchestrator.core.agents.registry import (
    BASE_PROMPT,
    AgentRegistry,
    BaseAgentProfile,
    agent_registry,
)
from orchestrator.core.agents.schema import (
    AgentConfig,
    AgentType,
)

__all__ = [
    "AgentConfigProvider",
    "AgentConfig",
    "AgentRegistry",
    "AgentType",
    "BASE_PROMPT",
    "BaseAgentProfile",
    "agent_registry",
]
