"""Agent configuration provider interface."""

from abc import (
    ABC,
    abstractmethod,
)
from typing import Optional

from orchestrator.core.agents.schema import (
    AgentConfig,
    AgentType,
)


class AgentConfigProvider(ABC):
    """Resolves agent identifiers to execution settings."""

    @abstractmethod
    def resolve(self, agent: AgentType | str) -> Optional[AgentConfig]:
        """Return the config for ``agent``, or None if it is unknown or unavailable."""
