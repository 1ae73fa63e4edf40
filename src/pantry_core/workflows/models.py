"""
Workflow Definition Models

A workflow is a linear pipeline of steps. Step types other than agent_task
are pass-through steps that forward their input unchanged.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors.exceptions import InvalidWorkflowDefinition
from ..state.models import ErrorInfo, WorkflowState, WorkflowStatus


class StepType(Enum):
    AGENT_TASK = "agent_task"
    DECISION = "decision"
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    CONDITIONAL = "conditional"


@dataclass
class RetryPolicy:
    """
    Retries for an agent task step.

    Attempt n (1-based retry) waits ``backoff_ms * n`` milliseconds.
    """
    max_retries: int = 0
    backoff_ms: int = 0

    def delay_seconds(self, retry: int) -> float:
        return self.backoff_ms * retry / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {"max_retries": self.max_retries, "backoff_ms": self.backoff_ms}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryPolicy":
        return cls(max_retries=int(data.get("max_retries", 0)), backoff_ms=int(data.get("backoff_ms", 0)))


@dataclass
class WorkflowStep:
    """
    One step of a workflow.

    Attributes:
        step_id: Unique within the workflow
        step_type: Handler to dispatch to
        name: Human readable name
        agent_id: Target agent (agent_task only)
        task_type: Task type sent to the agent (defaults to step_id)
        condition: Free-form condition label (conditional/decision)
        timeout_ms: Deadline for the step (None = engine default)
        retry_policy: Retries for agent tasks (None = engine default)
    """
    step_id: str
    step_type: StepType = StepType.AGENT_TASK
    name: str = ""
    description: str = ""
    agent_id: Optional[str] = None
    task_type: Optional[str] = None
    condition: Optional[str] = None
    timeout_ms: Optional[int] = None
    retry_policy: Optional[RetryPolicy] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "step_type": self.step_type.value,
            "name": self.name,
            "description": self.description,
            "agent_id": self.agent_id,
            "task_type": self.task_type,
            "condition": self.condition,
            "timeout_ms": self.timeout_ms,
            "retry_policy": self.retry_policy.to_dict() if self.retry_policy else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowStep":
        return cls(
            step_id=data["step_id"],
            step_type=StepType(data.get("step_type", StepType.AGENT_TASK.value)),
            name=data.get("name", ""),
            description=data.get("description", ""),
            agent_id=data.get("agent_id"),
            task_type=data.get("task_type"),
            condition=data.get("condition"),
            timeout_ms=data.get("timeout_ms"),
            retry_policy=RetryPolicy.from_dict(data["retry_policy"]) if data.get("retry_policy") else None,
        )


@dataclass
class WorkflowDefinition:
    workflow_id: str
    name: str
    steps: List[WorkflowStep]
    description: str = ""
    version: str = "1.0.0"
    metadata: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """
        Check the definition can be executed.

        Raises:
            InvalidWorkflowDefinition: Missing id, no steps, duplicate step
                ids, or an agent_task step without an agent_id
        """
        if not self.workflow_id:
            raise InvalidWorkflowDefinition("Workflow must have a non-empty workflow_id")
        if not self.steps:
            raise InvalidWorkflowDefinition(
                f"Workflow '{self.workflow_id}' has no steps", {"workflow_id": self.workflow_id}
            )

        seen = set()
        for step in self.steps:
            if step.step_id in seen:
                raise InvalidWorkflowDefinition(
                    f"Duplicate step id '{step.step_id}' in workflow '{self.workflow_id}'",
                    {"workflow_id": self.workflow_id, "step_id": step.step_id},
                )
            seen.add(step.step_id)
            if step.step_type == StepType.AGENT_TASK and not step.agent_id:
                raise InvalidWorkflowDefinition(
                    f"Agent task step '{step.step_id}' has no agent_id",
                    {"workflow_id": self.workflow_id, "step_id": step.step_id},
                )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "steps": [s.to_dict() for s in self.steps],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowDefinition":
        return cls(
            workflow_id=data["workflow_id"],
            name=data.get("name", data["workflow_id"]),
            description=data.get("description", ""),
            version=data.get("version", "1.0.0"),
            steps=[WorkflowStep.from_dict(s) for s in data.get("steps") or []],
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class WorkflowResult:
    """Outcome of one execution, returned instead of raising."""
    success: bool
    workflow_id: str
    execution_id: Optional[str]
    status: WorkflowStatus
    output: Any = None
    state: Optional[WorkflowState] = None
    error: Optional[ErrorInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "workflow_id": self.workflow_id,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "output": self.output,
            "state": self.state.to_dict() if self.state else None,
            "error": self.error.to_dict() if self.error else None,
        }
