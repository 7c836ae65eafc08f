"""Orchestrator facade: plan, execute, compile.

``Orchestrator.run`` is the single entry point for a full workflow run.
``Orchestrator.prepare_context`` runs the same pipeline but returns the
gathered step results as context messages for a downstream streaming call,
skipping execution entirely when the plan is the simple default plan.
"""

import asyncio
import time
import uuid
from typing import (
    Dict,
    List,
    Optional,
)

from orchestrator.core.agents.base import AgentConfigProvider
from orchestrator.core.agents.registry import agent_registry
from orchestrator.core.agents.schema import AgentType
from orchestrator.core.config import settings
from orchestrator.core.logging import logger
from orchestrator.core.workflow.compiler import ResultCompiler
from orchestrator.core.workflow.errors import PlanGenerationError
from orchestrator.core.workflow.executor import WorkflowExecutor
from orchestrator.core.workflow.observer import duration_flags
from orchestrator.core.workflow.planner import PlanGenerator
from orchestrator.core.workflow.schema import (
    ExecutionResult,
    OrchestrationContext,
    OrchestratorResult,
    WorkflowPlan,
)


class Orchestrator:
    """Composes PlanGenerator, WorkflowExecutor and ResultCompiler.

    Each call owns its own plan and context values, so one instance can
    serve concurrent runs.
    """

    def __init__(
        self,
        planner: Optional[PlanGenerator] = None,
        executor: Optional[WorkflowExecutor] = None,
        compiler: Optional[ResultCompiler] = None,
        config_provider: Optional[AgentConfigProvider] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the Orchestrator.

        Args:
            planner: Initial plan generator.
            executor: Plan executor.
            compiler: Final result compiler.
            config_provider: Agent settings, used to pick target models in ``prepare_context``.
            timeout: Default run deadline in seconds, None for no deadline.
        """
        self.planner = planner or PlanGenerator()
        self.executor = executor or WorkflowExecutor()
        self.compiler = compiler or ResultCompiler()
        self.config_provider = config_provider or agent_registry
        self.timeout = settings.WORKFLOW_TIMEOUT_SECONDS if timeout is None else timeout

    async def _generate_plan(
        self,
        request: str,
        agent_hint: Optional[AgentType | str],
        deadline: Optional[float],
    ) -> WorkflowPlan:
        if deadline is None:
            return await self.planner.generate(request, agent_hint)
        remaining = deadline - asyncio.get_running_loop().time()
        try:
            return await asyncio.wait_for(self.planner.generate(request, agent_hint), timeout=max(remaining, 0))
        except asyncio.TimeoutError as e:
            raise PlanGenerationError("Plan generation exceeded the run deadline") from e

    async def _plan_and_execute(
        self,
        request: str,
        agent_hint: Optional[AgentType | str],
        timeout: Optional[float],
    ) -> ExecutionResult:
        timeout = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        plan = await self._generate_plan(request, agent_hint, deadline)

        remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
        return await self.executor.execute(plan, request, timeout=remaining)

    async def run(
        self,
        request: str,
        agent_hint: Optional[AgentType | str] = None,
        timeout: Optional[float] = None,
    ) -> OrchestratorResult:
        """Plan, execute and compile a workflow for ``request``.

        Stalled, exhausted and timed out executions are returned as results
        with incomplete ``steps_taken_details``; compare them with
        ``final_plan`` or check ``is_complete``.

        Args:
            request: The user's request.
            agent_hint: Optional agent suggested by the caller.
            timeout: Run deadline in seconds, overriding the default.

        Returns:
            OrchestratorResult: Compiled result, per-step outputs and final plan.

        Raises:
            PlanGenerationError: If no initial plan could be produced.
        """
        run_id = uuid.uuid4().hex[:12]
        start = time.perf_counter()
        logger.info("orchestrator_run_started", run_id=run_id, request_preview=request[:100])

        try:
            execution = await self._plan_and_execute(request, agent_hint, timeout)
        except PlanGenerationError as e:
            logger.error(
                "orchestrator_run_failed",
                run_id=run_id,
                duration_ms=int((time.perf_counter() - start) * 1000),
                error=str(e),
                important=True,
            )
            raise

        final_result = self.compiler.compile(execution.context, execution.final_plan)
        result = OrchestratorResult(
            final_result=final_result,
            steps_taken_details=execution.context,
            final_plan=execution.final_plan,
            status=execution.status,
            iterations=execution.iterations,
            replans=execution.replans,
        )

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "orchestrator_run_finished",
            run_id=run_id,
            status=result.status.value,
            complete=result.is_complete,
            completed=len(result.steps_taken_details),
            total=len(result.final_plan.steps),
            duration_ms=duration_ms,
            **duration_flags(duration_ms),
        )
        return result

    def _target_model(self, agent: AgentType) -> str:
        try:
            config = self.config_provider.resolve(agent)
        except Exception as e:
            logger.warning("orchestrator_target_model_unresolved", agent=agent.value, error=str(e))
            return settings.DEFAULT_LLM_MODEL
        if config is None:
            return settings.DEFAULT_LLM_MODEL
        return config.model

    async def prepare_context(
        self,
        request: str,
        agent_hint: Optional[AgentType | str] = None,
        timeout: Optional[float] = None,
    ) -> OrchestrationContext:
        """Gather step results as context for a downstream streaming call.

        A simple plan (a single ``default`` step) is not executed: the caller
        answers directly with the default agent's model. Otherwise the plan
        is executed and every completed step becomes an assistant message.

        Raises:
            PlanGenerationError: If no initial plan could be produced.
        """
        start = time.perf_counter()
        timeout = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        plan = await self._generate_plan(request, agent_hint, deadline)

        if plan.is_simple_default():
            logger.info("orchestrator_context_execution_skipped", plan_type="simple")
            return OrchestrationContext(
                target_model_id=self._target_model(AgentType.DEFAULT),
                context_messages=[],
                plan_summary=plan.agent_summary(),
            )

        remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
        execution = await self.executor.execute(plan, request, timeout=remaining)
        final_plan = execution.final_plan

        messages: List[Dict[str, str]] = []
        for index, step in enumerate(final_plan.steps):
            output = execution.context.get(index)
            if output is None:
                continue
            messages.append({"role": "assistant", "content": f"Context from {step.agent.value}: {output.result}"})

        context = OrchestrationContext(
            target_model_id=self._target_model(final_plan.steps[-1].agent),
            context_messages=messages,
            plan_summary=final_plan.agent_summary(),
        )

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "orchestrator_context_prepared",
            plan_type="complex",
            status=execution.status.value,
            context_message_count=len(messages),
            target_model_id=context.target_model_id,
            duration_ms=duration_ms,
            **duration_flags(duration_ms),
        )
        return context


_orchestrator: Optional[Orchestrator] = None


def get_orchestrator() -> Orchestrator:
    """Get or create the orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator()
    return _orchestrator
