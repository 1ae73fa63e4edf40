"""
Workflow Engine

Runs workflow definitions as linear pipelines: steps execute strictly in
definition order and each completed step's output is the next step's input.

Execution rules:
- Every attempted step gets one WorkflowStepExecution record
  (pending -> running -> completed|failed)
- The first failed step fails the execution; later steps get no record
- Each step runs under a deadline (step.timeout_ms or the engine default)
- Executions beyond MAX_CONCURRENT_WORKFLOWS fail fast with CAPACITY_EXCEEDED
- Pause and cancel requests take effect before the next step starts

Failures are returned as a failed WorkflowResult, never raised.
"""
from typing import Any, Dict, List, Optional, Set
import asyncio
import logging

from ..agents.base import AgentRegistry
from ..config import CoreConfig
from ..errors.exceptions import (
    CapacityExceeded,
    InvalidWorkflowState,
    OrchestrationError,
    StepExecutionError,
    StepTimeout,
    WorkflowNotFound,
)
from ..state.models import (
    ErrorInfo,
    StepStatus,
    WorkflowState,
    WorkflowStatus,
    WorkflowStepExecution,
    new_id,
    utcnow,
)
from ..state.store import StateStore
from .models import RetryPolicy, WorkflowDefinition, WorkflowResult, WorkflowStep
from .steps import StepHandler, default_handlers

logger = logging.getLogger(__name__)


def _error_info(error: Exception, step_id: Optional[str] = None) -> ErrorInfo:
    if isinstance(error, OrchestrationError):
        details = dict(error.details)
        code, message = error.code, error.message
    else:
        details = {"error_type": type(error).__name__}
        code, message = StepExecutionError.code, str(error)
    if step_id is not None:
        details["step_id"] = step_id
    return ErrorInfo(code=code, message=message, details=details)


class WorkflowEngine:
    """
    Sequential workflow executor over a worker agent registry.

    Example:
        >>> engine = WorkflowEngine(registry, store)
        >>> engine.create_workflow(WorkflowDefinition(
        ...     workflow_id="restock", name="Restock",
        ...     steps=[WorkflowStep("check", agent_id="inventory"),
        ...            WorkflowStep("order", agent_id="procurement")]))
        >>> result = await engine.execute_workflow("restock", {"item": "抽纸"})
    """

    def __init__(
        self,
        registry: AgentRegistry,
        store: Optional[StateStore] = None,
        config: Optional[CoreConfig] = None,
        handlers: Optional[Dict[Any, StepHandler]] = None,
    ):
        self.registry = registry
        self.store = store
        self.config = config or CoreConfig()

        default_retry = RetryPolicy(
            max_retries=self.config.DEFAULT_MAX_RETRIES,
            backoff_ms=self.config.DEFAULT_BACKOFF_MS,
        )
        self._handlers = default_handlers(registry, default_retry)
        if handlers:
            self._handlers.update(handlers)

        self._definitions: Dict[str, WorkflowDefinition] = {}
        self._active: Dict[str, WorkflowState] = {}
        self._pause_requests: Set[str] = set()
        self._cancel_requests: Set[str] = set()
        self._paused: Dict[str, WorkflowState] = {}

    @property
    def max_concurrent(self) -> int:
        return self.config.MAX_CONCURRENT_WORKFLOWS

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def create_workflow(self, definition: WorkflowDefinition) -> str:
        """
        Validate and register a workflow definition.

        Returns:
            The workflow id

        Raises:
            InvalidWorkflowDefinition: If the definition is not executable
        """
        definition.validate()
        if definition.workflow_id in self._definitions:
            logger.warning(
                f"Workflow '{definition.workflow_id}' is already registered. "
                f"Overwriting with new definition."
            )
        self._definitions[definition.workflow_id] = definition
        logger.info(f"Registered workflow '{definition.workflow_id}'",
                    extra={'workflow_id': definition.workflow_id, 'steps': len(definition.steps)})
        return definition.workflow_id

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self._definitions.get(workflow_id)

    def list_workflows(self) -> List[str]:
        return list(self._definitions.keys())

    def active_executions(self) -> List[str]:
        return list(self._active.keys())

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_workflow(
        self,
        workflow_id: str,
        input: Any = None,
        global_context: Optional[Dict[str, Any]] = None,
    ) -> WorkflowResult:
        """
        Execute a registered workflow.

        Args:
            workflow_id: Registered workflow id
            input: Input of the first step
            global_context: Values shared with every agent task

        Returns:
            WorkflowResult (success only when every step completed)
        """
        definition = self._definitions.get(workflow_id)
        if definition is None:
            return self._rejected(workflow_id, WorkflowNotFound(workflow_id))

        # Check and claim a slot without awaiting in between
        if len(self._active) >= self.max_concurrent:
            logger.warning(
                f"Rejecting workflow '{workflow_id}': capacity reached",
                extra={'workflow_id': workflow_id, 'active': len(self._active)}
            )
            return self._rejected(workflow_id, CapacityExceeded(self.max_concurrent))

        state = WorkflowState(
            workflow_id=workflow_id,
            execution_id=new_id(),
            global_context={"input": input, **(global_context or {})},
        )
        self._active[state.execution_id] = state

        logger.info(f"Starting workflow '{workflow_id}'",
                    extra={'workflow_id': workflow_id, 'execution_id': state.execution_id})
        try:
            return await self._run(definition, state, input, start_index=0)
        finally:
            self._release(state.execution_id)

    async def _run(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        data: Any,
        start_index: int,
    ) -> WorkflowResult:
        await self._save(state)

        for step in definition.steps[start_index:]:
            if state.execution_id in self._cancel_requests:
                return await self._finish(state, WorkflowStatus.CANCELLED, data)
            if state.execution_id in self._pause_requests:
                state.status = WorkflowStatus.PAUSED
                self._paused[state.execution_id] = state
                await self._save(state)
                logger.info(f"Workflow '{state.workflow_id}' paused before step '{step.step_id}'",
                            extra={'workflow_id': state.workflow_id, 'execution_id': state.execution_id})
                return self._result(state, data)

            record = WorkflowStepExecution(step_id=step.step_id, execution_id=state.execution_id, input=data)
            state.step_history.append(record)
            state.current_step = step.step_id

            record.status = StepStatus.RUNNING
            record.started_at = utcnow()
            try:
                output = await self._dispatch(step, data, state)
            except Exception as e:
                error = _error_info(e, step.step_id)
                record.status = StepStatus.FAILED
                record.error = error
                record.completed_at = utcnow()
                state.error = error
                logger.error(
                    f"Workflow '{state.workflow_id}' failed at step '{step.step_id}': {error.message}",
                    extra={
                        'workflow_id': state.workflow_id,
                        'execution_id': state.execution_id,
                        'step_id': step.step_id,
                        'error_code': error.code,
                    }
                )
                return await self._finish(state, WorkflowStatus.FAILED, None)

            record.status = StepStatus.COMPLETED
            record.output = output
            record.completed_at = utcnow()
            data = output
            await self._save(state)

        # A cancel that arrived during the last step still wins
        if state.execution_id in self._cancel_requests:
            return await self._finish(state, WorkflowStatus.CANCELLED, data)
        return await self._finish(state, WorkflowStatus.COMPLETED, data)

    async def _dispatch(self, step: WorkflowStep, data: Any, state: WorkflowState) -> Any:
        handler = self._handlers[step.step_type]
        timeout_ms = step.timeout_ms or self.config.DEFAULT_STEP_TIMEOUT_MS
        try:
            return await asyncio.wait_for(handler.run(step, data, state), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            raise StepTimeout(
                step.step_id,
                f"Step '{step.step_id}' timed out after {timeout_ms}ms",
                {"timeout_ms": timeout_ms},
            )

    async def _finish(self, state: WorkflowState, status: WorkflowStatus, output: Any) -> WorkflowResult:
        state.status = status
        state.completed_at = utcnow()
        if status == WorkflowStatus.CANCELLED and state.error is None:
            state.error = ErrorInfo(code="WORKFLOW_CANCELLED", message="Workflow was cancelled")
        await self._save(state)
        logger.info(f"Workflow '{state.workflow_id}' {status.value}",
                    extra={'workflow_id': state.workflow_id, 'execution_id': state.execution_id,
                           'steps': len(state.step_history)})
        return self._result(state, output)

    @staticmethod
    def _result(state: WorkflowState, output: Any) -> WorkflowResult:
        return WorkflowResult(
            success=state.status == WorkflowStatus.COMPLETED,
            workflow_id=state.workflow_id,
            execution_id=state.execution_id,
            status=state.status,
            output=output,
            state=state,
            error=state.error,
        )

    @staticmethod
    def _rejected(workflow_id: str, error: OrchestrationError) -> WorkflowResult:
        return WorkflowResult(
            success=False,
            workflow_id=workflow_id,
            execution_id=None,
            status=WorkflowStatus.FAILED,
            error=_error_info(error),
        )

    def _release(self, execution_id: str) -> None:
        self._active.pop(execution_id, None)
        self._pause_requests.discard(execution_id)
        self._cancel_requests.discard(execution_id)

    async def _save(self, state: WorkflowState) -> None:
        if self.store is not None:
            await self.store.save_workflow_state(state.workflow_id, state.execution_id, state)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def get_workflow_status(self, workflow_id: str, execution_id: str) -> Optional[WorkflowState]:
        """Live state of a running execution, else the persisted state."""
        state = self._active.get(execution_id)
        if state is not None and state.workflow_id == workflow_id:
            return state
        state = self._paused.get(execution_id)
        if state is not None and state.workflow_id == workflow_id:
            return state
        if self.store is None:
            return None
        return await self.store.load_workflow_state(workflow_id, execution_id)

    async def get_workflow_history(self, workflow_id: str) -> List[WorkflowState]:
        """Persisted executions of a workflow, oldest first."""
        if self.store is None:
            return [s for s in self._active.values() if s.workflow_id == workflow_id]
        return await self.store.list_workflow_states(workflow_id)

    async def pause_workflow(self, workflow_id: str, execution_id: str) -> bool:
        """
        Ask a running execution to pause before its next step.

        Returns:
            True if the execution is running and will pause
        """
        state = self._active.get(execution_id)
        if state is None or state.workflow_id != workflow_id or state.status != WorkflowStatus.RUNNING:
            return False
        self._pause_requests.add(execution_id)
        return True

    async def resume_workflow(self, workflow_id: str, execution_id: str) -> WorkflowResult:
        """
        Continue a paused execution after its last completed step.

        Returns:
            WorkflowResult of the continued run, or a failed result when the
            execution is unknown, not paused, or capacity is reached
        """
        definition = self._definitions.get(workflow_id)
        if definition is None:
            return self._rejected(workflow_id, WorkflowNotFound(workflow_id))

        state = await self.get_workflow_status(workflow_id, execution_id)
        if state is None:
            return self._rejected(workflow_id, InvalidWorkflowState(
                f"Unknown execution: {execution_id}", {"execution_id": execution_id}))
        if state.status != WorkflowStatus.PAUSED or execution_id in self._active:
            return self._rejected(workflow_id, InvalidWorkflowState(
                f"Execution {execution_id} is {state.status.value}, not paused",
                {"execution_id": execution_id, "status": state.status.value}))

        if len(self._active) >= self.max_concurrent:
            return self._rejected(workflow_id, CapacityExceeded(self.max_concurrent))
        self._active[execution_id] = state
        self._paused.pop(execution_id, None)

        completed = state.completed_step_ids()
        step_ids = [s.step_id for s in definition.steps]
        start_index = max((step_ids.index(sid) + 1 for sid in completed if sid in step_ids), default=0)
        completed_records = [r for r in state.step_history if r.status == StepStatus.COMPLETED]
        data = completed_records[-1].output if completed_records else state.global_context.get("input")

        state.status = WorkflowStatus.RUNNING
        logger.info(f"Resuming workflow '{workflow_id}' at step {start_index}",
                    extra={'workflow_id': workflow_id, 'execution_id': execution_id})
        try:
            return await self._run(definition, state, data, start_index)
        finally:
            self._release(execution_id)

    async def cancel_workflow(self, workflow_id: str, execution_id: str) -> bool:
        """
        Cancel a running or paused execution.

        A running execution stops before its next step; a step already in
        flight runs to completion. Cancelling during the last step still
        finishes the execution as cancelled.

        Returns:
            True if the execution will be (or was) cancelled
        """
        state = self._active.get(execution_id)
        if state is not None and state.workflow_id == workflow_id:
            self._cancel_requests.add(execution_id)
            return True

        state = await self.get_workflow_status(workflow_id, execution_id)
        if state is None or state.status != WorkflowStatus.PAUSED:
            return False
        self._paused.pop(execution_id, None)
        await self._finish(state, WorkflowStatus.CANCELLED, None)
        return True

    async def shutdown(self) -> None:
        """Ask every running execution to stop before its next step."""
        for execution_id in list(self._active.keys()):
            self._cancel_requests.add(execution_id)
        logger.info("WorkflowEngine shutting down", extra={'active': len(self._active)})
