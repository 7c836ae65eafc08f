"""Unit tests for AgentInvoker and step prompt construction."""

import pytest

from orchestrator.core.agents.registry import BASE_PROMPT
from orchestrator.core.agents.schema import AgentType
from orchestrator.core.workflow.errors import StepExecutionError
from orchestrator.core.workflow.invoker import (
    AgentInvoker,
    build_step_prompt,
)
from orchestrator.core.workflow.schema import (
    AgentOutput,
    WorkflowStep,
)


class TestBuildStepPrompt:
    """Tests for the task prompt format."""

    def test_no_dependencies(self):
        """Test a prompt for a step without dependencies."""
        step = WorkflowStep(agent="researcher", task="Find trends")
        prompt = build_step_prompt(step, {}, "Plan my launch")
        assert prompt.startswith('Initial Request: "Plan my launch"\n')
        assert "Relevant previous step results" not in prompt
        assert prompt.endswith("Your Task: Find trends")

    def test_dependency_outputs_in_order(self):
        """Test that dependency outputs appear in the step's dependency order."""
        step = WorkflowStep(agent="copyeditor", task="Edit", depends_on=[2, 0])
        context = {0: AgentOutput(result="research"), 1: AgentOutput(result="unrelated"), 2: AgentOutput(result="draft")}
        prompt = build_step_prompt(step, context, "Req")

        assert "--- Output from Step 2 ---\ndraft" in prompt
        assert "--- Output from Step 0 ---\nresearch" in prompt
        assert prompt.index("Step 2 ---") < prompt.index("Step 0 ---")
        assert "unrelated" not in prompt

    def test_missing_dependency_skipped(self):
        """Test that only dependencies present in the context are included."""
        step = WorkflowStep(agent="copyeditor", task="Edit", depends_on=[0, 1])
        prompt = build_step_prompt(step, {1: AgentOutput(result="draft")}, "Req")
        assert "Step 0 ---" not in prompt
        assert "Step 1 ---" in prompt


class TestAgentInvoker:
    """Tests for single step execution."""

    @pytest.mark.asyncio
    async def test_invoke(self, make_agents, agent_output, registry):
        """Test a successful invocation with the agent's settings."""
        agents = make_agents({"Write copy": agent_output("Great copy")})
        invoker = AgentInvoker(execution_capability=agents, config_provider=registry, max_retries=0)

        result = await invoker.invoke(WorkflowStep(agent="copywriting", task="Write copy"), {}, "Req", step_index=0)

        assert isinstance(result, AgentOutput)
        assert result.result == "Great copy"
        config = agents.calls[0]["config"]
        assert config.temperature == 0.7
        assert config.system_prompt.startswith(BASE_PROMPT)

    @pytest.mark.asyncio
    async def test_receives_dependency_context(self, make_agents, agent_output, registry):
        """Test that dependency outputs reach the agent prompt."""
        agents = make_agents({"Edit": agent_output("Edited")})
        invoker = AgentInvoker(execution_capability=agents, config_provider=registry, max_retries=0)
        step = WorkflowStep(agent="copyeditor", task="Edit", depends_on=[0])

        await invoker.invoke(step, {0: AgentOutput(result="Rough draft")}, "Req")

        assert "Rough draft" in agents.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_retry_then_success(self, make_agents, agent_output, registry):
        """Test that one failed attempt is retried."""
        agents = make_agents({"Write": [RuntimeError("timeout"), agent_output("ok")]})
        invoker = AgentInvoker(execution_capability=agents, config_provider=registry, max_retries=1)

        result = await invoker.invoke(WorkflowStep(agent="copywriting", task="Write"), {}, "Req")

        assert result.result == "ok"
        assert len(agents.calls) == 2

    @pytest.mark.asyncio
    async def test_malformed_output_is_retried(self, make_agents, agent_output, registry):
        """Test that output not matching the schema counts as a failed attempt."""
        agents = make_agents({"Write": [{"metadata": {}}, agent_output("ok")]})
        invoker = AgentInvoker(execution_capability=agents, config_provider=registry, max_retries=1)

        result = await invoker.invoke(WorkflowStep(agent="copywriting", task="Write"), {}, "Req")

        assert result.result == "ok"

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, make_agents, registry):
        """Test that exhausting retries raises StepExecutionError with coordinates."""
        agents = make_agents({"Write": RuntimeError("provider down")})
        invoker = AgentInvoker(execution_capability=agents, config_provider=registry, max_retries=1)

        with pytest.raises(StepExecutionError) as exc_info:
            await invoker.invoke(WorkflowStep(agent="copywriting", task="Write"), {}, "Req", step_index=3)

        assert exc_info.value.step_index == 3
        assert exc_info.value.agent == "copywriting"
        assert len(agents.calls) == 2

    @pytest.mark.asyncio
    async def test_unresolvable_agent(self, make_agents, tmp_agent_config):
        """Test that an agent without configuration fails without calling the provider."""
        from orchestrator.core.agents.registry import AgentRegistry

        agents = make_agents({})
        invoker = AgentInvoker(
            execution_capability=agents, config_provider=AgentRegistry(config_path=tmp_agent_config), max_retries=3
        )

        with pytest.raises(StepExecutionError, match="Agent configuration not found for type: quiz"):
            await invoker.invoke(WorkflowStep(agent=AgentType.QUIZ, task="Quiz"), {}, "Req")
        assert agents.calls == []

    @pytest.mark.asyncio
    async def test_invalid_agent_configuration(self, make_agents, registry, tmp_path):
        """Test that overrides failing validation surface as StepExecutionError."""
        config = tmp_path / "agents.yaml"
        config.write_text("quiz:\n  temperature: 5\n", encoding="utf-8")
        registry.load_overrides(str(config))
        agents = make_agents({})
        invoker = AgentInvoker(execution_capability=agents, config_provider=registry, max_retries=3)

        with pytest.raises(StepExecutionError, match="Agent configuration for type quiz is invalid") as exc_info:
            await invoker.invoke(WorkflowStep(agent=AgentType.QUIZ, task="Quiz"), {}, "Req", step_index=0)

        assert exc_info.value.step_index == 0
        assert exc_info.value.agent == "quiz"
        assert agents.calls == []
