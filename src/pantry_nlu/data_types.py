"""
Data structures for the rule-based understanding pipeline.

This module defines the contracts between the classifier, the extractor,
the clarification engine and the orchestration core, using dataclasses
for type safety and JSON-friendly ``to_dict`` / ``from_dict`` conversion.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from enum import Enum


class EntityKind(Enum):
    """Known entity kinds carried on ``Entities``."""
    ITEMS = "items"
    ITEM_NAME = "item_name"
    QUANTITIES = "quantities"
    QUANTITY = "quantity"
    ACTIONS = "actions"
    ACTION = "action"
    PLATFORMS = "platforms"
    PLATFORM = "platform"
    UNIT = "unit"
    TIME_PERIOD = "time_period"


class GuidanceType(Enum):
    """Why a turn needs a follow-up question."""
    AMBIGUOUS_INTENT = "ambiguous_intent"
    ENTITY_MISSING = "entity_missing"
    INCOMPLETE_COMMAND = "incomplete_command"
    CONTEXT_NEEDED = "context_needed"


@dataclass
class Entities:
    """
    Typed entity bag passed between pipeline stages.

    Known kinds are explicit fields; anything else lands in ``extra``.
    A field that was not extracted stays None and is omitted from
    ``to_dict()``.
    """
    items: Optional[List[str]] = None
    item_name: Optional[str] = None
    quantities: Optional[List[int]] = None
    quantity: Optional[int] = None
    actions: Optional[List[str]] = None
    action: Optional[str] = None
    platforms: Optional[List[str]] = None
    platform: Optional[str] = None
    unit: Optional[str] = None
    time_period: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def get(self, kind: EntityKind) -> Any:
        """Get the value for a known kind (None when absent)."""
        return getattr(self, kind.value)

    def has(self, kind: EntityKind) -> bool:
        """Check whether a known kind was extracted."""
        return self.get(kind) is not None

    def is_empty(self) -> bool:
        """True when nothing at all was extracted."""
        return not self.to_dict()

    def merge(self, other: "Entities") -> "Entities":
        """
        Last-known-good merge.

        Fields present in ``other`` overwrite; fields absent in ``other``
        keep their current value. Returns a new instance.

        Args:
            other: Newer entities

        Returns:
            Merged entities
        """
        merged = Entities.from_dict(self.to_dict())
        for kind in EntityKind:
            value = other.get(kind)
            if value is not None:
                setattr(merged, kind.value, list(value) if isinstance(value, list) else value)
        merged.extra.update(other.extra)
        return merged

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to JSON-serializable dictionary.

        Returns:
            Dictionary with present fields only; ``extra`` keys are flattened in
        """
        result: Dict[str, Any] = {}
        for kind in EntityKind:
            value = self.get(kind)
            if value is not None:
                result[kind.value] = list(value) if isinstance(value, list) else value
        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Entities":
        """
        Build from a flat dictionary; unknown keys go to ``extra``.

        Args:
            data: Dictionary as produced by ``to_dict()`` (None allowed)

        Returns:
            Entities instance
        """
        entities = cls()
        known = {kind.value for kind in EntityKind}
        for key, value in (data or {}).items():
            if value is None:
                continue
            if key in known:
                setattr(entities, key, list(value) if isinstance(value, list) else value)
            else:
                entities.extra[key] = value
        return entities


@dataclass
class ExtractedField:
    """
    One extracted value with provenance.

    Attributes:
        field_name: Entity kind name (e.g., "item_name")
        value: Extracted value
        confidence: Extraction confidence (0.0 to 1.0)
        source: Where the value came from
    """
    field_name: str
    value: Any
    confidence: float
    source: str = "user_input"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_name": self.field_name,
            "value": self.value,
            "confidence": self.confidence,
            "source": self.source,
        }


@dataclass
class EntityResult:
    """Entity extractor output."""
    entities: Entities = field(default_factory=Entities)
    confidence: float = 0.7
    fields: List[ExtractedField] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": self.entities.to_dict(),
            "confidence": self.confidence,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass
class IntentResult:
    """
    Intent classifier output.

    Attributes:
        intent: Intent label from the fixed table, or the fallback intent
        confidence: Confidence score (0.0 to 1.0)
        entities: Basic entities found in the same utterance
        reasoning: Human-readable explanation of the decision
        contextual_info: Free-form details (matched keywords, scores)
    """
    intent: str
    confidence: float
    entities: Entities = field(default_factory=Entities)
    reasoning: str = ""
    contextual_info: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate confidence range."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "entities": self.entities.to_dict(),
            "reasoning": self.reasoning,
            "contextual_info": dict(self.contextual_info),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IntentResult":
        return cls(
            intent=data["intent"],
            confidence=float(data.get("confidence", 0.0)),
            entities=Entities.from_dict(data.get("entities")),
            reasoning=data.get("reasoning", ""),
            contextual_info=dict(data.get("contextual_info") or {}),
        )


@dataclass
class ClarificationAnalysis:
    """
    Clarification engine decision for one turn.

    ``needs_clarification`` False means the turn is actionable and the other
    fields are informational only.
    """
    needs_clarification: bool = False
    reason: str = ""
    missing_entities: List[str] = field(default_factory=list)
    ambiguous_terms: List[str] = field(default_factory=list)
    confidence: float = 1.0
    guidance_type: GuidanceType = GuidanceType.ENTITY_MISSING
    suggested_questions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "needs_clarification": self.needs_clarification,
            "reason": self.reason,
            "missing_entities": list(self.missing_entities),
            "ambiguous_terms": list(self.ambiguous_terms),
            "confidence": self.confidence,
            "guidance_type": self.guidance_type.value,
            "suggested_questions": list(self.suggested_questions),
        }


@dataclass
class LanguageDetection:
    """Language detector output."""
    language: str
    confidence: float
    reasoning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }
