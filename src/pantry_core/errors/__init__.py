from .exceptions import (
    OrchestrationError,
    AgentNotFound,
    WorkflowNotFound,
    InvalidWorkflowDefinition,
    InvalidWorkflowState,
    CapacityExceeded,
    StepExecutionError,
    StepTimeout,
    StateStoreError,
)

__all__ = [
    "OrchestrationError",
    "AgentNotFound",
    "WorkflowNotFound",
    "InvalidWorkflowDefinition",
    "InvalidWorkflowState",
    "CapacityExceeded",
    "StepExecutionError",
    "StepTimeout",
    "StateStoreError",
]
