"""
Core Error Classes

Custom exceptions for the orchestration core.

Only the workflow engine and the agent registry raise these to callers; the
conversation manager converts failures into degraded results instead.
"""
from typing import Any, Dict, Optional


class OrchestrationError(Exception):
    """Base class for orchestration failures."""

    code = "ORCHESTRATION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AgentNotFound(OrchestrationError):
    """Raised when a workflow step names an agent that is not registered."""

    code = "AGENT_NOT_FOUND"

    def __init__(self, agent_id: str):
        super().__init__(f"Agent not found: {agent_id}", {"agent_id": agent_id})
        self.agent_id = agent_id


class WorkflowNotFound(OrchestrationError):
    """Raised when a workflow id has no registered definition."""

    code = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow not found: {workflow_id}", {"workflow_id": workflow_id})
        self.workflow_id = workflow_id


class InvalidWorkflowDefinition(OrchestrationError):
    """Raised when a workflow definition fails validation."""

    code = "INVALID_WORKFLOW_DEFINITION"


class CapacityExceeded(OrchestrationError):
    """Raised when too many workflow executions are in flight."""

    code = "CAPACITY_EXCEEDED"

    def __init__(self, limit: int):
        super().__init__(
            f"Maximum concurrent workflows reached ({limit})", {"max_concurrent_workflows": limit}
        )
        self.limit = limit


class StepExecutionError(OrchestrationError):
    """Raised when a workflow step fails."""

    code = "STEP_EXECUTION_FAILED"

    def __init__(self, step_id: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, {"step_id": step_id, **(details or {})})
        self.step_id = step_id


class StepTimeout(StepExecutionError):
    """Raised when a step does not finish within its deadline."""

    code = "STEP_TIMEOUT"


class StateStoreError(OrchestrationError):
    """Raised by state store backends; callers log it and treat it as a miss."""

    code = "STATE_STORE_ERROR"


class InvalidWorkflowState(OrchestrationError):
    """Raised when an execution is not in a state that allows the operation."""

    code = "INVALID_WORKFLOW_STATE"
