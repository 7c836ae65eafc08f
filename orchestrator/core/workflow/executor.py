"""Workflow executor: dependency-aware, bounded, self-correcting plan execution.

Execution is a state machine over ``ExecutionStatus``::

    RUNNING --(all steps have outputs)----------> COMPLETED
    RUNNING --(full scan without progress)------> STALLED
    RUNNING --(iteration cap or run deadline)---> EXHAUSTED

Each iteration scans the active plan in index order and invokes every step
whose dependencies are complete. A step whose output asks for revision
triggers re-planning; a successful replacement swaps the active plan,
empties the context and restarts the scan without counting an iteration.
"""

import asyncio
import time
from dataclasses import (
    dataclass,
    field,
)
from enum import Enum
from typing import (
    Awaitable,
    Dict,
    List,
    Optional,
    Tuple,
    TypeVar,
)

from orchestrator.core.config import settings
from orchestrator.core.workflow.errors import (
    ReplanningError,
    StepExecutionError,
)
from orchestrator.core.workflow.invoker import AgentInvoker
from orchestrator.core.workflow.observer import (
    ExecutionObserver,
    LoggingObserver,
)
from orchestrator.core.workflow.revision import RevisionPlanner
from orchestrator.core.workflow.schema import (
    AgentOutput,
    ExecutionResult,
    ExecutionStatus,
    WorkflowContext,
    WorkflowPlan,
    WorkflowStep,
)

T = TypeVar("T")


class _ScanOutcome(str, Enum):
    PROGRESS = "progress"
    NO_PROGRESS = "no_progress"
    REPLANNED = "replanned"


class _DeadlineExceeded(Exception):
    """Internal signal: the run deadline passed at a suspension point."""


def next_status(
    plan: WorkflowPlan,
    context: WorkflowContext,
    made_progress: bool,
    iterations: int,
) -> ExecutionStatus:
    """Decide the executor state after a full scan.

    Args:
        plan: The active plan version.
        context: Completed outputs of that plan version.
        made_progress: Whether the scan completed at least one step.
        iterations: Full scans performed so far, including this one.

    Returns:
        ExecutionStatus: COMPLETED, STALLED, EXHAUSTED or RUNNING.
    """
    if all(index in context for index in range(len(plan.steps))):
        return ExecutionStatus.COMPLETED
    if not made_progress:
        return ExecutionStatus.STALLED
    if iterations >= plan.max_iterations:
        return ExecutionStatus.EXHAUSTED
    return ExecutionStatus.RUNNING


@dataclass
class _RunState:
    """Mutable state of one execution, owned by a single ``execute`` call."""

    plan: WorkflowPlan
    context: Dict[int, AgentOutput] = field(default_factory=dict)
    iterations: int = 0
    replans: int = 0

    def install(self, plan: WorkflowPlan) -> None:
        """Swap in a new plan version and drop every output of the old one."""
        self.plan = plan
        self.context = {}

    def record(self, index: int, output: AgentOutput) -> None:
        if index in self.context:
            raise RuntimeError(f"Step {index} already has an output in this plan version")
        self.context[index] = output

    def missing_dependencies(self, step: WorkflowStep) -> List[int]:
        return [dep for dep in step.depends_on if dep not in self.context]


class WorkflowExecutor:
    """Drives a plan to completion, stall or exhaustion.

    Attributes:
        invoker: Executes individual steps.
        revision_planner: Produces replacement plans on revision requests.
        observer: Receives execution events.
        max_replans: Plan replacements allowed per run.
        parallel_steps: Invoke all ready steps of a scan concurrently.
        max_concurrency: Upper bound on concurrent step invocations.
        timeout: Default run deadline in seconds, None for no deadline.
    """

    def __init__(
        self,
        invoker: Optional[AgentInvoker] = None,
        revision_planner: Optional[RevisionPlanner] = None,
        observer: Optional[ExecutionObserver] = None,
        max_replans: Optional[int] = None,
        parallel_steps: Optional[bool] = None,
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the WorkflowExecutor."""
        self.invoker = invoker or AgentInvoker()
        self.revision_planner = revision_planner or RevisionPlanner()
        self.observer = observer or LoggingObserver()
        self.max_replans = settings.WORKFLOW_MAX_REPLANS if max_replans is None else max_replans
        self.parallel_steps = settings.WORKFLOW_PARALLEL_STEPS if parallel_steps is None else parallel_steps
        self.max_concurrency = max(1, settings.WORKFLOW_MAX_CONCURRENCY if max_concurrency is None else max_concurrency)
        self.timeout = settings.WORKFLOW_TIMEOUT_SECONDS if timeout is None else timeout

    async def execute(
        self,
        plan: WorkflowPlan,
        request: str,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        """Execute ``plan`` for ``request``.

        Args:
            plan: The initial plan version.
            request: The user's original request.
            timeout: Run deadline in seconds, overriding the executor default.

        Returns:
            ExecutionResult: Terminal status, context and final plan version.
            Stalled and exhausted runs return normally with partial context.
        """
        timeout = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        state = _RunState(plan=plan)
        status = ExecutionStatus.RUNNING
        timed_out = False
        start = time.perf_counter()
        self.observer.on_execution_started(plan)

        while status is ExecutionStatus.RUNNING:
            self.observer.on_iteration_started(state.iterations, state.plan)
            try:
                outcome = await self._scan(state, request, deadline)
            except _DeadlineExceeded:
                self.observer.on_deadline_exceeded(state.iterations, len(state.context), len(state.plan.steps))
                status = ExecutionStatus.EXHAUSTED
                timed_out = True
                break

            if outcome is _ScanOutcome.REPLANNED:
                continue

            made_progress = outcome is _ScanOutcome.PROGRESS
            state.iterations += 1
            self.observer.on_iteration_finished(
                state.iterations - 1, made_progress, len(state.context), len(state.plan.steps)
            )
            status = next_status(state.plan, state.context, made_progress, state.iterations)

        result = ExecutionResult(
            status=status,
            context=dict(state.context),
            final_plan=state.plan,
            iterations=state.iterations,
            replans=state.replans,
            timed_out=timed_out,
        )
        self.observer.on_execution_finished(result, int((time.perf_counter() - start) * 1000))
        return result

    async def _scan(self, state: _RunState, request: str, deadline: Optional[float]) -> _ScanOutcome:
        if self.parallel_steps:
            return await self._scan_parallel(state, request, deadline)
        return await self._scan_sequential(state, request, deadline)

    async def _scan_sequential(self, state: _RunState, request: str, deadline: Optional[float]) -> _ScanOutcome:
        """Scan in index order; a step may use outputs completed earlier in the same scan."""
        made_progress = False
        for index, step in enumerate(state.plan.steps):
            if index in state.context:
                continue
            missing = state.missing_dependencies(step)
            if missing:
                self.observer.on_step_waiting(index, step, missing)
                continue

            output = await self._run_step(state, index, step, request, deadline)
            if output is None:
                continue

            state.record(index, output)
            made_progress = True
            if output.metadata.needs_revision and await self._revise(state, index, step, output, request, deadline):
                return _ScanOutcome.REPLANNED

        return _ScanOutcome.PROGRESS if made_progress else _ScanOutcome.NO_PROGRESS

    async def _scan_parallel(self, state: _RunState, request: str, deadline: Optional[float]) -> _ScanOutcome:
        """Invoke every step ready at scan start concurrently, then record in index order."""
        ready: List[Tuple[int, WorkflowStep]] = []
        for index, step in enumerate(state.plan.steps):
            if index in state.context:
                continue
            missing = state.missing_dependencies(step)
            if missing:
                self.observer.on_step_waiting(index, step, missing)
            else:
                ready.append((index, step))

        if not ready:
            return _ScanOutcome.NO_PROGRESS

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run_with_semaphore(index: int, step: WorkflowStep) -> Optional[AgentOutput]:
            async with semaphore:
                return await self._run_step(state, index, step, request, deadline)

        results = await asyncio.gather(
            *(_run_with_semaphore(index, step) for index, step in ready),
            return_exceptions=True,
        )

        made_progress = False
        deadline_hit = False
        for (index, step), output in zip(ready, results):
            if isinstance(output, _DeadlineExceeded):
                deadline_hit = True
                continue
            if isinstance(output, BaseException):
                raise output
            if output is None:
                continue

            state.record(index, output)
            made_progress = True
            if output.metadata.needs_revision and await self._revise(state, index, step, output, request, deadline):
                return _ScanOutcome.REPLANNED

        if deadline_hit:
            raise _DeadlineExceeded()
        return _ScanOutcome.PROGRESS if made_progress else _ScanOutcome.NO_PROGRESS

    async def _run_step(
        self,
        state: _RunState,
        index: int,
        step: WorkflowStep,
        request: str,
        deadline: Optional[float],
    ) -> Optional[AgentOutput]:
        """Invoke one ready step; returns None if the step failed."""
        dependency_context = {dep: state.context[dep] for dep in step.depends_on}
        self.observer.on_step_started(index, step)
        start = time.perf_counter()
        try:
            output = await self._within_deadline(
                self.invoker.invoke(step, dependency_context, request, step_index=index),
                deadline,
            )
        except StepExecutionError as e:
            self.observer.on_step_failed(index, step, e, int((time.perf_counter() - start) * 1000))
            return None

        self.observer.on_step_completed(index, step, output, int((time.perf_counter() - start) * 1000))
        return output

    async def _revise(
        self,
        state: _RunState,
        index: int,
        step: WorkflowStep,
        output: AgentOutput,
        request: str,
        deadline: Optional[float],
    ) -> bool:
        """Try to replace the active plan after a revision request.

        Returns:
            bool: True if a new plan version was installed.
        """
        issues = list(output.metadata.issues)
        self.observer.on_revision_requested(index, step, issues)

        if state.replans >= self.max_replans:
            self.observer.on_replan_skipped(index, state.replans)
            return False

        start = time.perf_counter()
        try:
            new_plan = await self._within_deadline(
                self.revision_planner.replan(state.plan, index, issues, request, flagged_result=output.result),
                deadline,
            )
        except ReplanningError as e:
            self.observer.on_replan_failed(index, e, int((time.perf_counter() - start) * 1000))
            return False

        old_plan = state.plan
        state.install(new_plan)
        state.replans += 1
        self.observer.on_plan_replaced(old_plan, new_plan, int((time.perf_counter() - start) * 1000))
        return True

    @staticmethod
    async def _within_deadline(awaitable: Awaitable[T], deadline: Optional[float]) -> T:
        if deadline is None:
            return await awaitable
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise _DeadlineExceeded()
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError:
            raise _DeadlineExceeded() from None
