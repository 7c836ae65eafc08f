"""Workflow orchestration engine.

A request becomes a validated plan of agent steps with dependency edges.
The executor runs ready steps, re-plans when an agent flags its output for
revision, and stops in a terminal state; the compiler assembles the outputs.

Key components:
- PlanGenerator / RevisionPlanner: planning-model driven plan creation
- PlanValidator: structural plan checks
- AgentInvoker: single step execution with retries
- WorkflowExecutor: bounded, dependency-aware execution loop
- ResultCompiler: deterministic final result assembly
- Orchestrator: the plan, execute, compile facade
"""

from orchestrator.core.workflow.base import (
    PlanningCapability,
    StepExecutionCapability,
)
from orchestrator.core.workflow.compiler import ResultCompiler
from orchestrator.core.workflow.errors import (
    OrchestrationError,
    PlanGenerationError,
    ReplanningError,
    StepExecutionError,
)
from orchestrator.core.workflow.executor import (
    WorkflowExecutor,
    next_status,
)
from orchestrator.core.workflow.invoker import (
    AgentInvoker,
    build_step_prompt,
)
from orchestrator.core.workflow.observer import (
    ExecutionObserver,
    LoggingObserver,
)
from orchestrator.core.workflow.orchestrator import (
    Orchestrator,
    get_orchestrator,
)
from orchestrator.core.workflow.planner import PlanGenerator
from orchestrator.core.workflow.revision import RevisionPlanner
from orchestrator.core.workflow.schema import (
    AgentOutput,
    AgentOutputMetadata,
    ExecutionResult,
    ExecutionStatus,
    OrchestrationContext,
    OrchestratorResult,
    WorkflowContext,
    WorkflowPlan,
    WorkflowStep,
)
from orchestrator.core.workflow.validator import PlanValidator

__all__ = [
    "AgentInvoker",
    "AgentOutput",
    "AgentOutputMetadata",
    "ExecutionObserver",
    "ExecutionResult",
    "ExecutionStatus",
    "LoggingObserver",
    "OrchestrationContext",
    "OrchestrationError",
    "Orchestrator",
    "OrchestratorResult",
    "PlanGenerationError",
    "PlanGenerator",
    "PlanValidator",
    "PlanningCapability",
    "ReplanningError",
    "ResultCompiler",
    "RevisionPlanner",
    "StepExecutionCapability",
    "StepExecutionError",
    "WorkflowContext",
    "WorkflowExecutor",
    "WorkflowPlan",
    "WorkflowStep",
    "build_step_prompt",
    "get_orchestrator",
    "next_status",
]
