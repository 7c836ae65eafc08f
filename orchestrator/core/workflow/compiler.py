"""Deterministic assembly of the final workflow result."""

from typing import Mapping

from orchestrator.core.workflow.schema import (
    AgentOutput,
    WorkflowPlan,
)

NOT_COMPLETED = "[Step not completed]"
SECTION_SEPARATOR = "\n\n---\n\n"


class ResultCompiler:
    """Compiles step outputs into one result string, in plan order.

    Pure: the same context and plan always produce the same string.
    """

    def compile(self, context: Mapping[int, AgentOutput], final_plan: WorkflowPlan) -> str:
        """Build the final result.

        Args:
            context: Completed step outputs of the final plan version.
            final_plan: The plan version active at termination.

        Returns:
            str: A header followed by one labeled section per plan step.
        """
        sections = []
        for index, step in enumerate(final_plan.steps):
            label = f"### Step {index + 1}: {step.agent.value}"
            output = context.get(index)
            body = output.result if output is not None else NOT_COMPLETED
            sections.append(f"{label}\n{body}")

        completed = sum(1 for index in range(len(final_plan.steps)) if index in context)
        header = f"# Workflow Results\n*Completed {completed} of {len(final_plan.steps)} steps*"
        if not sections:
            return header
        return f"{header}\n\n" + SECTION_SEPARATOR.join(sections)
