"""Agent profiles for workflow steps.

Each profile is a specialized agent with a focused system prompt and its
own sampling settings. The planner advertises enabled profiles to the
planning model, and the invoker resolves a step's agent to an
``AgentConfig`` through ``AgentRegistry.resolve``.
"""

import os
from typing import (
    Any,
    Dict,
    FrozenSet,
    List,
    Optional,
)

import yaml

from orchestrator.core.agents.base import AgentConfigProvider
from orchestrator.core.agents.schema import (
    AgentConfig,
    AgentType,
)
from orchestrator.core.config import settings
from orchestrator.core.logging import logger

BASE_PROMPT = (
    "You are one specialist in a multi-step workflow for a marketing assistant serving photographers. "
    "You receive the user's original request, the results of any earlier steps you depend on, and "
    "your own task. Complete only your task and return:\n"
    "- result: the full output of your task\n"
    "- metadata.quality_score: your honest 1-10 assessment of the result\n"
    "- metadata.needs_revision: true only if the result cannot satisfy the request as planned "
    "(missing information, wrong approach, contradictory inputs)\n"
    "- metadata.issues: short descriptions of what is wrong when needs_revision is true"
)


class BaseAgentProfile:
    """Base class for all agent profiles.

    Attributes:
        agent_type: Identifier steps use to select this agent.
        description: Brief description used by the planner for routing.
        model: Model the agent runs on, None for the configured default.
        temperature: Sampling temperature.
        max_output_tokens: Token budget, None for provider default.
        system_prompt: Specialisation appended to the shared base prompt.
    """

    agent_type: AgentType = AgentType.DEFAULT
    description: str = "General assistant."
    model: Optional[str] = None
    temperature: float = 0.5
    max_output_tokens: Optional[int] = None
    system_prompt: str = ""

    def build_system_prompt(self) -> str:
        """Combine the shared base prompt with this agent's specialisation."""
        if not self.system_prompt:
            return BASE_PROMPT
        return f"{BASE_PROMPT}\n\n{self.system_prompt}"

    def to_config(self) -> AgentConfig:
        """Export this profile as an ``AgentConfig``."""
        return AgentConfig(
            model=self.model or settings.AGENT_DEFAULT_MODEL,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            system_prompt=self.build_system_prompt(),
        )


class DefaultAgent(BaseAgentProfile):
    """General purpose agent that answers requests directly."""

    agent_type = AgentType.DEFAULT
    description = "General marketing assistant. Answers questions, researches and summarizes using available context."
    temperature = 0.5


class CopywritingAgent(BaseAgentProfile):
    """Website, email and marketing copy specialist."""

    agent_type = AgentType.COPYWRITING
    description = "Writes website, email and marketing copy."
    temperature = 0.7
    system_prompt = (
        "You are an expert copywriter. Write persuasive, on-brand copy with a clear call to action. "
        "Match the tone the user asks for and keep claims truthful."
    )


class GoogleAdsAgent(BaseAgentProfile):
    """Google Ads campaign specialist."""

    agent_type = AgentType.GOOGLE_ADS
    description = "Creates and optimizes Google Ads campaigns: keywords, headlines, descriptions."
    temperature = 0.4
    system_prompt = (
        "You are a Google Ads specialist. Respect headline (30 characters) and description "
        "(90 characters) limits, group keywords by intent and suggest negative keywords."
    )


class FacebookAdsAgent(BaseAgentProfile):
    """Facebook and Instagram advertising specialist."""

    agent_type = AgentType.FACEBOOK_ADS
    description = "Plans social media advertising: audiences, ad copy and creative direction."
    temperature = 0.4
    system_prompt = (
        "You are a Facebook and Instagram ads specialist. Define target audiences, write primary text "
        "and headlines, and describe the creative for each ad variation."
    )


class QuizAgent(BaseAgentProfile):
    """Interactive quiz builder for lead generation."""

    agent_type = AgentType.QUIZ
    description = "Creates interactive quizzes and questionnaires for lead generation."
    temperature = 0.6
    system_prompt = (
        "You design lead-generation quizzes. Produce a title, 5-10 questions with answer options, "
        "result outcomes and a follow-up call to action."
    )


class ResearcherAgent(BaseAgentProfile):
    """Information gathering specialist."""

    agent_type = AgentType.RESEARCHER
    description = "Gathers external information as a distinct first step when significant research is needed."
    temperature = 0.3
    system_prompt = (
        "You are an expert researcher. Gather the facts the later steps need, verify them, "
        "and present findings in a clear, organized format."
    )


class CopyeditorAgent(BaseAgentProfile):
    """Editing and refinement specialist."""

    agent_type = AgentType.COPYEDITOR
    description = "Edits and refines text produced by earlier steps or supplied by the user."
    temperature = 0.3
    system_prompt = (
        "You are a meticulous copyeditor. Fix grammar, clarity and consistency while preserving "
        "the author's voice. Return the edited text, not a list of suggestions."
    )


_DEFAULT_PROFILES: List[BaseAgentProfile] = [
    DefaultAgent(),
    CopywritingAgent(),
    GoogleAdsAgent(),
    FacebookAdsAgent(),
    QuizAgent(),
    ResearcherAgent(),
    CopyeditorAgent(),
]

_OVERRIDABLE_FIELDS = ("description", "model", "temperature", "max_output_tokens", "system_prompt")


class AgentRegistry(AgentConfigProvider):
    """Registry of agent profiles, resolving identifiers to execution configs.

    Profiles start from the built-in set and can be adjusted from a YAML
    file mapping agent identifiers to overrides::

        copywriting:
          model: gpt-4o
          temperature: 0.8
        quiz:
          enabled: false
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the registry with the built-in profiles.

        Args:
            config_path: Optional YAML overrides file.
        """
        self._profiles: Dict[AgentType, BaseAgentProfile] = {p.agent_type: p for p in _DEFAULT_PROFILES}
        self._overrides: Dict[AgentType, Dict[str, Any]] = {}
        self._disabled: set[AgentType] = set()
        if config_path:
            self.load_overrides(config_path)

    def load_overrides(self, config_path: str) -> None:
        """Load per-agent overrides from a YAML file.

        Unknown agent identifiers and unknown keys are logged and ignored; a file
        that fails to parse is logged and leaves the registry unchanged.

        Args:
            config_path: Path to the YAML overrides file.
        """
        if not os.path.isfile(config_path):
            logger.warning("agent_config_file_not_found", path=config_path)
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.exception("agent_config_parse_failed", path=config_path, error=str(e))
            return

        if not isinstance(data, dict):
            logger.warning("agent_config_file_invalid", path=config_path)
            return

        for name, overrides in data.items():
            try:
                agent_type = AgentType(name)
            except ValueError:
                logger.warning("agent_config_unknown_agent", agent=name, path=config_path)
                continue
            if not isinstance(overrides, dict):
                continue

            if overrides.get("enabled") is False:
                self._disabled.add(agent_type)
            else:
                self._disabled.discard(agent_type)

            fields = {k: v for k, v in overrides.items() if k in _OVERRIDABLE_FIELDS}
            ignored = set(overrides) - set(fields) - {"enabled"}
            if ignored:
                logger.warning("agent_config_unknown_keys", agent=name, keys=sorted(ignored))
            self._overrides.setdefault(agent_type, {}).update(fields)

        logger.info(
            "agent_config_overrides_loaded",
            path=config_path,
            overridden=sorted(a.value for a in self._overrides),
            disabled=sorted(a.value for a in self._disabled),
        )

    def resolve(self, agent: AgentType | str) -> Optional[AgentConfig]:
        """Resolve an agent identifier to its execution config.

        Args:
            agent: The agent identifier.

        Returns:
            Optional[AgentConfig]: The config, or None for unknown or disabled agents.
        """
        try:
            agent_type = AgentType(agent)
        except ValueError:
            return None
        if agent_type in self._disabled or agent_type not in self._profiles:
            return None

        config = self._profiles[agent_type].to_config()
        overrides = self._overrides.get(agent_type)
        if not overrides:
            return config

        update: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key == "system_prompt":
                update["system_prompt"] = f"{BASE_PROMPT}\n\n{value}" if value else BASE_PROMPT
            elif key != "description":
                update[key] = value
        return AgentConfig.model_validate({**config.model_dump(), **update})

    def known_agents(self) -> FrozenSet[AgentType]:
        """Return the identifiers plans may currently use."""
        return frozenset(a for a in self._profiles if a not in self._disabled)

    def describe(self, agent: AgentType) -> str:
        """Return the routing description of an agent."""
        override = self._overrides.get(agent, {}).get("description")
        return override or self._profiles[agent].description

    def list_agents(self) -> List[Dict[str, str]]:
        """List enabled agents with their descriptions.

        Returns:
            List[Dict[str, str]]: Agent name and description pairs.
        """
        return [{"name": a.value, "description": self.describe(a)} for a in self._profiles if a not in self._disabled]

    def get_agents_prompt(self, include_default: bool = True) -> str:
        """Render the enabled agents as a prompt section for the planners."""
        lines = []
        for entry in self.list_agents():
            if not include_default and entry["name"] == AgentType.DEFAULT.value:
                continue
            lines.append(f"- **{entry['name']}**: {entry['description']}")
        return "\n".join(lines)


# Global singleton
agent_registry = AgentRegistry(config_path=settings.AGENT_CONFIG_PATH)
