"""
State Models

Persisted records of the orchestration core: conversation context and turns,
pending clarification requests, workflow execution state and cache entries.

Every model converts to and from a JSON-compatible dict. Datetimes are
stored as ISO-8601 strings with microseconds, so a save/load round trip
returns an equal object.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from pantry_nlu.data_types import Entities, GuidanceType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")


def _dt_from_str(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class WorkflowStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED)


class StepStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ErrorInfo:
    """Structured error attached to failed steps and workflows."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
            "timestamp": _dt_to_str(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorInfo":
        return cls(
            code=data["code"],
            message=data.get("message", ""),
            details=dict(data.get("details") or {}),
            timestamp=_dt_from_str(data.get("timestamp")) or utcnow(),
        )


@dataclass(frozen=True)
class ConversationTurn:
    """
    One utterance/response exchange. Frozen once appended to a context.

    Attributes:
        turn_id: Unique turn identifier
        user_input: Text that was routed (combined text for clarification replies)
        agent_response: Response text, filled by the surrounding transport
        intent: Classified intent
        entities: Entities extracted for this turn
        timestamp: When the turn was recorded
        agent_id: Agent the turn was routed to
    """
    turn_id: str
    user_input: str
    intent: str
    agent_id: str
    entities: Entities = field(default_factory=Entities)
    agent_response: str = ""
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "turn_id": self.turn_id,
            "user_input": self.user_input,
            "agent_response": self.agent_response,
            "intent": self.intent,
            "entities": self.entities.to_dict(),
            "timestamp": _dt_to_str(self.timestamp),
            "agent_id": self.agent_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        return cls(
            turn_id=data["turn_id"],
            user_input=data.get("user_input", ""),
            agent_response=data.get("agent_response", ""),
            intent=data.get("intent", ""),
            entities=Entities.from_dict(data.get("entities")),
            timestamp=_dt_from_str(data.get("timestamp")) or utcnow(),
            agent_id=data.get("agent_id", ""),
        )


@dataclass
class ConversationContext:
    """
    Per-conversation state, mutated after every routed turn.

    ``contextual_info`` carries last_intent, last_entities,
    last_routing_result and the language fields.
    """
    conversation_id: str
    user_id: str
    current_intent: Optional[str] = None
    entities: Entities = field(default_factory=Entities)
    session_history: List[ConversationTurn] = field(default_factory=list)
    contextual_info: Dict[str, Any] = field(default_factory=dict)
    user_preferences: Dict[str, Any] = field(default_factory=dict)
    preferred_language: Optional[str] = None
    detected_language: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)

    def append_turn(self, turn: ConversationTurn, max_history: int) -> None:
        """Append a turn and drop the oldest turns beyond ``max_history``."""
        self.session_history.append(turn)
        overflow = len(self.session_history) - max_history
        if overflow > 0:
            del self.session_history[:overflow]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "user_id": self.user_id,
            "current_intent": self.current_intent,
            "entities": self.entities.to_dict(),
            "session_history": [turn.to_dict() for turn in self.session_history],
            "contextual_info": dict(self.contextual_info),
            "user_preferences": dict(self.user_preferences),
            "preferred_language": self.preferred_language,
            "detected_language": self.detected_language,
            "created_at": _dt_to_str(self.created_at),
            "last_activity": _dt_to_str(self.last_activity),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationContext":
        return cls(
            conversation_id=data["conversation_id"],
            user_id=data.get("user_id", ""),
            current_intent=data.get("current_intent"),
            entities=Entities.from_dict(data.get("entities")),
            session_history=[ConversationTurn.from_dict(t) for t in data.get("session_history") or []],
            contextual_info=dict(data.get("contextual_info") or {}),
            user_preferences=dict(data.get("user_preferences") or {}),
            preferred_language=data.get("preferred_language"),
            detected_language=data.get("detected_language"),
            created_at=_dt_from_str(data.get("created_at")) or utcnow(),
            last_activity=_dt_from_str(data.get("last_activity")) or utcnow(),
        )


@dataclass
class ClarificationRequest:
    """
    Outstanding follow-up question for a conversation.

    At most one exists per conversation; the manager stores it keyed by
    conversation id and deletes it when resolved or exhausted.
    """
    question: str
    guidance_type: GuidanceType
    original_input: str
    attempts: int = 1
    max_attempts: int = 3
    missing_entities: List[str] = field(default_factory=list)
    suggested_responses: List[str] = field(default_factory=list)
    expected_entity_type: str = "general"
    reason: str = ""
    request_id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "question": self.question,
            "missing_entities": list(self.missing_entities),
            "guidance_type": self.guidance_type.value,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "original_input": self.original_input,
            "suggested_responses": list(self.suggested_responses),
            "expected_entity_type": self.expected_entity_type,
            "reason": self.reason,
            "timestamp": _dt_to_str(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClarificationRequest":
        return cls(
            request_id=data["request_id"],
            question=data.get("question", ""),
            missing_entities=list(data.get("missing_entities") or []),
            guidance_type=GuidanceType(data["guidance_type"]),
            attempts=int(data.get("attempts", 1)),
            max_attempts=int(data.get("max_attempts", 3)),
            original_input=data.get("original_input", ""),
            suggested_responses=list(data.get("suggested_responses") or []),
            expected_entity_type=data.get("expected_entity_type", "general"),
            reason=data.get("reason", ""),
            timestamp=_dt_from_str(data.get("timestamp")) or utcnow(),
        )


@dataclass
class WorkflowStepExecution:
    """One attempted workflow step: pending -> running -> completed|failed."""
    step_id: str
    execution_id: str
    status: StepStatus = StepStatus.PENDING
    input: Any = None
    output: Any = None
    error: Optional[ErrorInfo] = None
    retry_count: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "started_at": _dt_to_str(self.started_at),
            "completed_at": _dt_to_str(self.completed_at),
            "input": self.input,
            "output": self.output,
            "error": self.error.to_dict() if self.error else None,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowStepExecution":
        return cls(
            step_id=data["step_id"],
            execution_id=data["execution_id"],
            status=StepStatus(data.get("status", StepStatus.PENDING.value)),
            started_at=_dt_from_str(data.get("started_at")) or utcnow(),
            completed_at=_dt_from_str(data.get("completed_at")),
            input=data.get("input"),
            output=data.get("output"),
            error=ErrorInfo.from_dict(data["error"]) if data.get("error") else None,
            retry_count=int(data.get("retry_count", 0)),
        )


@dataclass
class WorkflowState:
    """Execution state of one workflow run."""
    workflow_id: str
    execution_id: str
    current_step: Optional[str] = None
    step_history: List[WorkflowStepExecution] = field(default_factory=list)
    global_context: Dict[str, Any] = field(default_factory=dict)
    status: WorkflowStatus = WorkflowStatus.RUNNING
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[ErrorInfo] = None

    def completed_step_ids(self) -> List[str]:
        return [s.step_id for s in self.step_history if s.status == StepStatus.COMPLETED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "execution_id": self.execution_id,
            "current_step": self.current_step,
            "step_history": [s.to_dict() for s in self.step_history],
            "global_context": dict(self.global_context),
            "status": self.status.value,
            "started_at": _dt_to_str(self.started_at),
            "completed_at": _dt_to_str(self.completed_at),
            "error": self.error.to_dict() if self.error else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowState":
        return cls(
            workflow_id=data["workflow_id"],
            execution_id=data["execution_id"],
            current_step=data.get("current_step"),
            step_history=[WorkflowStepExecution.from_dict(s) for s in data.get("step_history") or []],
            global_context=dict(data.get("global_context") or {}),
            status=WorkflowStatus(data.get("status", WorkflowStatus.RUNNING.value)),
            started_at=_dt_from_str(data.get("started_at")) or utcnow(),
            completed_at=_dt_from_str(data.get("completed_at")),
            error=ErrorInfo.from_dict(data["error"]) if data.get("error") else None,
        )


@dataclass
class CacheEntry:
    """TTL cache entry; expiry is checked lazily on read."""
    key: str
    value: Any
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "created_at": _dt_to_str(self.created_at),
            "expires_at": _dt_to_str(self.expires_at),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            key=data["key"],
            value=data.get("value"),
            created_at=_dt_from_str(data.get("created_at")) or utcnow(),
            expires_at=_dt_from_str(data.get("expires_at")),
            metadata=dict(data.get("metadata") or {}),
        )
