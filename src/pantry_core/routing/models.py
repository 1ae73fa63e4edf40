"""
Routing Models

RoutingContext is what the conversation manager hands to the router;
RoutingResult is the decision; RoutingMemory is the rolling per-conversation
record the router keeps between calls.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pantry_nlu.data_types import Entities

from ..agents.base import AgentType
from ..state.models import ConversationTurn, _dt_from_str, _dt_to_str, utcnow


@dataclass
class RoutingContext:
    """
    Input to AgentRouter.route.

    ``current_context`` carries the classified ``intent`` (str),
    its ``confidence`` (float), the extracted ``entities`` (Entities) and
    the response ``language``.
    """
    conversation_id: str
    user_id: str
    session_history: List[ConversationTurn] = field(default_factory=list)
    current_context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    user_preferences: Dict[str, Any] = field(default_factory=dict)

    @property
    def intent(self) -> Optional[str]:
        return self.current_context.get("intent")

    @property
    def confidence(self) -> float:
        return float(self.current_context.get("confidence", 0.5))

    @property
    def entities(self) -> Entities:
        entities = self.current_context.get("entities")
        if isinstance(entities, Entities):
            return entities
        return Entities.from_dict(entities)

    @property
    def language(self) -> Optional[str]:
        return self.current_context.get("language")


@dataclass
class RoutingResult:
    """Routing decision for one utterance."""
    target_agent: AgentType
    confidence: float
    reasoning: str
    extracted_entities: Entities = field(default_factory=Entities)
    suggested_actions: List[str] = field(default_factory=list)
    contextual_info: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_agent": self.target_agent.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "extracted_entities": self.extracted_entities.to_dict(),
            "suggested_actions": list(self.suggested_actions),
            "contextual_info": dict(self.contextual_info),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingResult":
        return cls(
            target_agent=AgentType(data["target_agent"]),
            confidence=float(data["confidence"]),
            reasoning=data.get("reasoning", ""),
            extracted_entities=Entities.from_dict(data.get("extracted_entities")),
            suggested_actions=list(data.get("suggested_actions") or []),
            contextual_info=dict(data.get("contextual_info") or {}),
        )


@dataclass
class RoutingMemory:
    """Rolling routing record for one conversation."""
    conversation_id: str
    last_intent: Optional[str] = None
    last_entities: Entities = field(default_factory=Entities)
    last_decision: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = field(default_factory=list)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def last_agent(self) -> Optional[AgentType]:
        if not self.last_decision:
            return None
        return AgentType(self.last_decision["target_agent"])

    def record(self, intent: Optional[str], result: RoutingResult, max_history: int) -> None:
        """Remember a decision, keeping at most ``max_history`` entries."""
        decision = {
            "target_agent": result.target_agent.value,
            "confidence": result.confidence,
            "intent": intent,
            "timestamp": _dt_to_str(utcnow()),
        }
        self.last_intent = intent
        self.last_entities = self.last_entities.merge(result.extracted_entities)
        self.last_decision = decision
        self.history.append(decision)
        if len(self.history) > max_history:
            del self.history[:len(self.history) - max_history]
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "last_intent": self.last_intent,
            "last_entities": self.last_entities.to_dict(),
            "last_decision": dict(self.last_decision) if self.last_decision else None,
            "history": [dict(d) for d in self.history],
            "updated_at": _dt_to_str(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingMemory":
        return cls(
            conversation_id=data["conversation_id"],
            last_intent=data.get("last_intent"),
            last_entities=Entities.from_dict(data.get("last_entities")),
            last_decision=data.get("last_decision"),
            history=list(data.get("history") or []),
            updated_at=_dt_from_str(data.get("updated_at")) or utcnow(),
        )
