"""Unit tests for the Orchestrator facade."""

import asyncio

import pytest

from orchestrator.core.agents.registry import AgentRegistry
from orchestrator.core.config import settings
from orchestrator.core.workflow.base import PlanningCapability
from orchestrator.core.workflow.errors import PlanGenerationError
from orchestrator.core.workflow.executor import WorkflowExecutor
from orchestrator.core.workflow.invoker import AgentInvoker
from orchestrator.core.workflow.orchestrator import Orchestrator
from orchestrator.core.workflow.planner import (
    SIMPLE_TASK,
    PlanGenerator,
)
from orchestrator.core.workflow.revision import RevisionPlanner
from orchestrator.core.workflow.schema import ExecutionStatus

TWO_STEP_PLAN = {
    "steps": [
        {"agent": "researcher", "task": "Research"},
        {"agent": "copywriting", "task": "Write", "depends_on": [0]},
    ]
}


class SlowPlanningCapability(PlanningCapability):
    """Planning capability that never answers in time."""

    async def generate(self, system_instructions, user_prompt, output_shape):
        await asyncio.sleep(5)


@pytest.fixture
def build_orchestrator(make_planner, recording_observer, registry):
    """Factory wiring an orchestrator to scripted capabilities."""

    def _build(agents, *plans, agents_registry=None, planning_capability=None):
        agents_registry = agents_registry or registry
        planning = planning_capability or make_planner(*plans)
        executor = WorkflowExecutor(
            invoker=AgentInvoker(execution_capability=agents, config_provider=agents_registry, max_retries=0),
            revision_planner=RevisionPlanner(planning_capability=planning, agents=agents_registry, max_retries=0),
            observer=recording_observer,
            parallel_steps=False,
        )
        return Orchestrator(
            planner=PlanGenerator(planning_capability=planning, agents=agents_registry, max_retries=0),
            executor=executor,
            config_provider=agents_registry,
        )

    return _build


class TestOrchestratorRun:
    """Tests for Orchestrator.run."""

    @pytest.mark.asyncio
    async def test_complete_run(self, build_orchestrator, make_agents, agent_output):
        """Test a full plan, execute and compile cycle."""
        agents = make_agents({"Research": agent_output("Facts"), "Write": agent_output("Copy")})
        orchestrator = build_orchestrator(agents, TWO_STEP_PLAN)

        result = await orchestrator.run("Write a landing page", agent_hint="copywriting")

        assert result.status == ExecutionStatus.COMPLETED
        assert result.is_complete
        assert result.final_plan.agent_summary() == ["researcher", "copywriting"]
        assert result.steps_taken_details[1].result == "Copy"
        assert "*Completed 2 of 2 steps*" in result.final_result
        assert "### Step 2: copywriting\nCopy" in result.final_result

    @pytest.mark.asyncio
    async def test_plan_generation_failure_propagates(self, build_orchestrator, make_agents):
        """Test that a planning failure is raised and nothing is executed."""
        agents = make_agents({})
        orchestrator = build_orchestrator(agents, {"steps": []})

        with pytest.raises(PlanGenerationError):
            await orchestrator.run("Anything")
        assert agents.calls == []

    @pytest.mark.asyncio
    async def test_partial_run_is_returned(self, build_orchestrator, make_agents, agent_output):
        """Test that a stalled execution is a normal return with missing steps."""
        agents = make_agents({"Research": RuntimeError("down"), "Write": agent_output("Copy")})
        orchestrator = build_orchestrator(agents, TWO_STEP_PLAN)

        result = await orchestrator.run("Write a landing page")

        assert result.status == ExecutionStatus.STALLED
        assert not result.is_complete
        assert result.steps_taken_details == {}
        assert "[Step not completed]" in result.final_result

    @pytest.mark.asyncio
    async def test_replanned_run_reports_final_plan(self, build_orchestrator, make_agents, agent_output):
        """Test that the result carries the plan version active at the end."""
        agents = make_agents(
            {
                "Research": agent_output("Vague", needs_revision=True, issues=["too vague"]),
                "Answer": agent_output("Direct answer"),
            }
        )
        replacement = {"steps": [{"agent": "default", "task": "Answer"}]}
        orchestrator = build_orchestrator(agents, TWO_STEP_PLAN, replacement)

        result = await orchestrator.run("Req")

        assert result.replans == 1
        assert result.final_plan.agent_summary() == ["default"]
        assert "### Step 1: default\nDirect answer" in result.final_result

    @pytest.mark.asyncio
    async def test_deadline_during_planning(self, build_orchestrator, make_agents):
        """Test that planning past the deadline is a plan generation failure."""
        orchestrator = build_orchestrator(make_agents({}), planning_capability=SlowPlanningCapability())

        with pytest.raises(PlanGenerationError, match="deadline"):
            await orchestrator.run("Req", timeout=0.05)

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_isolated(self, build_orchestrator, make_agents, agent_output):
        """Test that one orchestrator can serve concurrent runs."""
        agents = make_agents({"Research": agent_output("Facts"), "Write": agent_output("Copy")})
        orchestrator = build_orchestrator(agents, TWO_STEP_PLAN, TWO_STEP_PLAN)

        first, second = await asyncio.gather(orchestrator.run("one"), orchestrator.run("two"))

        assert first.is_complete and second.is_complete
        assert first.steps_taken_details is not second.steps_taken_details


class TestOrchestratorPrepareContext:
    """Tests for Orchestrator.prepare_context."""

    @pytest.mark.asyncio
    async def test_simple_plan_skips_execution(self, build_orchestrator, make_agents):
        """Test that a simple default plan is not executed."""
        agents = make_agents({})
        orchestrator = build_orchestrator(agents, {"steps": [{"agent": "default", "task": SIMPLE_TASK}]})

        context = await orchestrator.prepare_context("What is a RAW file?")

        assert agents.calls == []
        assert context.context_messages == []
        assert context.plan_summary == ["default"]
        assert context.target_model_id == settings.AGENT_DEFAULT_MODEL

    @pytest.mark.asyncio
    async def test_complex_plan_gathers_messages(
        self, build_orchestrator, make_agents, agent_output, tmp_agent_config
    ):
        """Test that completed steps become assistant messages for the last step's model."""
        agents = make_agents({"Research": agent_output("Facts"), "Write": agent_output("Copy")})
        orchestrator = build_orchestrator(
            agents, TWO_STEP_PLAN, agents_registry=AgentRegistry(config_path=tmp_agent_config)
        )

        context = await orchestrator.prepare_context("Write a landing page")

        assert context.context_messages == [
            {"role": "assistant", "content": "Context from researcher: Facts"},
            {"role": "assistant", "content": "Context from copywriting: Copy"},
        ]
        assert context.target_model_id == "gpt-4o-mini"
        assert context.plan_summary == ["researcher", "copywriting"]

    @pytest.mark.asyncio
    async def test_misconfigured_last_agent(self, build_orchestrator, make_agents, agent_output, tmp_path):
        """Test that a last step with invalid overrides still yields context for the default model."""
        config = tmp_path / "agents.yaml"
        config.write_text("copywriting:\n  temperature: 5\n", encoding="utf-8")
        agents = make_agents({"Research": agent_output("Facts"), "Write": agent_output("Copy")})
        orchestrator = build_orchestrator(
            agents, TWO_STEP_PLAN, agents_registry=AgentRegistry(config_path=str(config))
        )

        context = await orchestrator.prepare_context("Write a landing page")

        assert context.context_messages == [{"role": "assistant", "content": "Context from researcher: Facts"}]
        assert context.target_model_id == settings.DEFAULT_LLM_MODEL
        assert agents.calls_for("Write") == []
