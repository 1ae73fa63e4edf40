"""
Step Handlers

One handler per StepType, each implementing ``run(step, input, state)``.
The engine wraps every call in the step deadline and records the outcome;
handlers only produce the step output or raise.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import asyncio
import logging

from ..agents.base import AgentRegistry, Task
from ..errors.exceptions import StepExecutionError
from ..state.models import WorkflowState, WorkflowStepExecution
from .models import RetryPolicy, StepType, WorkflowStep

logger = logging.getLogger(__name__)


def current_execution(state: WorkflowState, step_id: str) -> Optional[WorkflowStepExecution]:
    """Latest execution record for a step."""
    for record in reversed(state.step_history):
        if record.step_id == step_id:
            return record
    return None


class StepHandler(ABC):
    @abstractmethod
    async def run(self, step: WorkflowStep, input: Any, state: WorkflowState) -> Any:
        """Run a step and return its output; raise to fail it."""


class AgentTaskHandler(StepHandler):
    """
    Dispatches a Task to the step's agent.

    A missing agent fails immediately. Agent errors are retried according to
    the step's retry policy (or the default policy), sleeping
    ``backoff_ms * retry`` between attempts.
    """

    def __init__(self, registry: AgentRegistry, default_retry: Optional[RetryPolicy] = None):
        self.registry = registry
        self.default_retry = default_retry or RetryPolicy()

    async def run(self, step: WorkflowStep, input: Any, state: WorkflowState) -> Any:
        agent = self.registry.require(step.agent_id)
        policy = step.retry_policy or self.default_retry
        record = current_execution(state, step.step_id)

        last_error: Optional[Exception] = None
        attempts = policy.max_retries + 1
        for attempt in range(attempts):
            task = Task(
                type=step.task_type or step.step_id,
                payload={"input": input, "workflow_context": dict(state.global_context)},
                workflow_id=state.workflow_id,
                execution_id=state.execution_id,
                step_id=step.step_id,
            )
            try:
                return await agent.process_task(task)
            except Exception as e:
                last_error = e
                if attempt + 1 >= attempts:
                    break
                if record is not None:
                    record.retry_count = attempt + 1
                logger.warning(
                    f"Step '{step.step_id}' attempt {attempt + 1} failed, retrying: {e}",
                    extra={
                        'workflow_id': state.workflow_id,
                        'execution_id': state.execution_id,
                        'step_id': step.step_id,
                        'agent_id': step.agent_id,
                        'retry': attempt + 1,
                    }
                )
                await asyncio.sleep(policy.delay_seconds(attempt + 1))

        raise StepExecutionError(
            step.step_id,
            f"Agent task '{step.step_id}' failed after {attempts} attempt(s): {last_error}",
            {"agent_id": step.agent_id, "attempts": attempts, "error_type": type(last_error).__name__},
        ) from last_error


class PassThroughHandler(StepHandler):
    """Forwards the input wrapped with a marker for the step type."""

    def __init__(self, marker: str, outcome: str = "completed"):
        self.marker = marker
        self.outcome = outcome

    async def run(self, step: WorkflowStep, input: Any, state: WorkflowState) -> Any:
        return {self.marker: self.outcome, "input": input}


def default_handlers(registry: AgentRegistry, default_retry: Optional[RetryPolicy] = None) -> Dict[StepType, StepHandler]:
    return {
        StepType.AGENT_TASK: AgentTaskHandler(registry, default_retry),
        StepType.DECISION: PassThroughHandler("decision", "continue"),
        StepType.PARALLEL: PassThroughHandler("parallel"),
        StepType.SEQUENTIAL: PassThroughHandler("sequential"),
        StepType.CONDITIONAL: PassThroughHandler("conditional"),
    }
