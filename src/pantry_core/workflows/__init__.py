from .engine import WorkflowEngine
from .models import RetryPolicy, StepType, WorkflowDefinition, WorkflowResult, WorkflowStep
from .steps import AgentTaskHandler, PassThroughHandler, StepHandler

__all__ = [
    "AgentTaskHandler",
    "PassThroughHandler",
    "RetryPolicy",
    "StepHandler",
    "StepType",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowResult",
    "WorkflowStep",
]
