"""Shared test fixtures for the test suite."""

import asyncio
import os

os.environ.setdefault("APP_ENV", "test")

from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
)

import pytest

from orchestrator.core.agents.registry import AgentRegistry
from orchestrator.core.agents.schema import AgentConfig
from orchestrator.core.workflow.base import (
    PlanningCapability,
    StepExecutionCapability,
)
from orchestrator.core.workflow.observer import ExecutionObserver


class ScriptedPlanningCapability(PlanningCapability):
    """Planning capability that replays a fixed list of responses.

    Exception instances in the script are raised instead of returned.
    """

    def __init__(self, responses: Sequence[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, system_instructions, user_prompt, output_shape):
        self.calls.append(
            {"system": system_instructions, "prompt": user_prompt, "shape": output_shape}
        )
        if not self.responses:
            raise RuntimeError("No scripted planning response left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class ScriptedStepCapability(StepExecutionCapability):
    """Step execution capability keyed by the step's task text.

    A list value is consumed one response per call; any other value is
    returned on every call. Exception instances are raised.
    """

    def __init__(self, responses: Dict[str, Any], delays: Optional[Dict[str, float]] = None):
        self.responses = {task: list(r) if isinstance(r, list) else r for task, r in responses.items()}
        self.delays = delays or {}
        self.calls: List[Dict[str, Any]] = []
        self.active = 0
        self.max_active = 0

    @staticmethod
    def task_of(prompt: str) -> str:
        return prompt.rsplit("Your Task: ", 1)[1]

    def calls_for(self, task: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["task"] == task]

    async def execute(self, endpoint_config: AgentConfig, prompt, output_shape):
        task = self.task_of(prompt)
        self.calls.append({"task": task, "prompt": prompt, "config": endpoint_config})
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if task in self.delays:
                await asyncio.sleep(self.delays[task])
            response = self.responses[task]
            if isinstance(response, list):
                response = response.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response
        finally:
            self.active -= 1


class RecordingObserver(ExecutionObserver):
    """Observer that records every event name with its arguments."""

    def __init__(self):
        self.events: List[tuple] = []

    def names(self) -> List[str]:
        return [event[0] for event in self.events]

    def on_execution_started(self, plan):
        self.events.append(("execution_started", plan))

    def on_iteration_started(self, iteration, plan):
        self.events.append(("iteration_started", iteration))

    def on_step_waiting(self, index, step, missing):
        self.events.append(("step_waiting", index, list(missing)))

    def on_step_started(self, index, step):
        self.events.append(("step_started", index))

    def on_step_completed(self, index, step, output, duration_ms):
        self.events.append(("step_completed", index))

    def on_step_failed(self, index, step, error, duration_ms):
        self.events.append(("step_failed", index))

    def on_revision_requested(self, index, step, issues):
        self.events.append(("revision_requested", index, list(issues)))

    def on_plan_replaced(self, old_plan, new_plan, duration_ms):
        self.events.append(("plan_replaced", new_plan))

    def on_replan_failed(self, index, error, duration_ms):
        self.events.append(("replan_failed", index))

    def on_replan_skipped(self, index, replans):
        self.events.append(("replan_skipped", index, replans))

    def on_iteration_finished(self, iteration, made_progress, completed, total):
        self.events.append(("iteration_finished", iteration, made_progress))

    def on_deadline_exceeded(self, iteration, completed, total):
        self.events.append(("deadline_exceeded", iteration))

    def on_execution_finished(self, result, duration_ms):
        self.events.append(("execution_finished", result.status))


def output(result: str, needs_revision: bool = False, issues: Optional[List[str]] = None, score: float = 8) -> dict:
    """Build a raw agent output the way a provider returns it."""
    return {
        "result": result,
        "metadata": {"quality_score": score, "needs_revision": needs_revision, "issues": issues or []},
    }


@pytest.fixture
def make_planner() -> Callable[..., ScriptedPlanningCapability]:
    """Factory for scripted planning capabilities."""
    return lambda *responses: ScriptedPlanningCapability(responses)


@pytest.fixture
def make_agents() -> Callable[..., ScriptedStepCapability]:
    """Factory for scripted step execution capabilities."""
    return ScriptedStepCapability


@pytest.fixture
def recording_observer() -> RecordingObserver:
    """A fresh recording observer."""
    return RecordingObserver()


@pytest.fixture
def agent_output() -> Callable[..., dict]:
    """Builder for raw agent outputs."""
    return output


@pytest.fixture
def registry() -> AgentRegistry:
    """A registry with the built-in profiles and no overrides."""
    return AgentRegistry()


@pytest.fixture
def tmp_agent_config(tmp_path) -> str:
    """Create a temporary agent overrides file."""
    config_path = tmp_path / "agents.yaml"
    config_path.write_text(
        "copywriting:\n"
        "  model: gpt-4o-mini\n"
        "  temperature: 0.9\n"
        "  system_prompt: Write in a warm, personal tone.\n"
        "quiz:\n"
        "  enabled: false\n"
        "researcher:\n"
        "  description: Finds market data.\n"
        "  colour: blue\n"
        "astrologer:\n"
        "  model: gpt-4o\n",
        encoding="utf-8",
    )
    return str(config_path)
