"""
Conversation Result

Returned by ConversationManager.process for every utterance. Exactly one of
these holds on a successful result: ``requires_clarification`` with a
``clarification_request``, or a ``routing_result``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pantry_nlu.data_types import EntityResult, IntentResult, LanguageDetection

from ..routing.models import RoutingResult
from ..state.models import ClarificationRequest


@dataclass
class ConversationResult:
    success: bool
    conversation_id: str
    routing_result: Optional[RoutingResult] = None
    intent_result: Optional[IntentResult] = None
    entity_result: Optional[EntityResult] = None
    requires_clarification: bool = False
    clarification_request: Optional[ClarificationRequest] = None
    language_detection: Optional[LanguageDetection] = None
    response_language: Optional[str] = None
    error: Optional[str] = None
    processing_time_ms: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def target_agent(self) -> Optional[str]:
        return self.routing_result.target_agent.value if self.routing_result else None

    @property
    def confidence(self) -> Optional[float]:
        return self.routing_result.confidence if self.routing_result else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "conversation_id": self.conversation_id,
            "routing_result": self.routing_result.to_dict() if self.routing_result else None,
            "intent_result": self.intent_result.to_dict() if self.intent_result else None,
            "entity_result": self.entity_result.to_dict() if self.entity_result else None,
            "requires_clarification": self.requires_clarification,
            "clarification_request": (
                self.clarification_request.to_dict() if self.clarification_request else None
            ),
            "language_detection": self.language_detection.to_dict() if self.language_detection else None,
            "response_language": self.response_language,
            "error": self.error,
            "processing_time_ms": self.processing_time_ms,
            "metadata": dict(self.metadata),
        }
