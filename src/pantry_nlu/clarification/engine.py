"""
Clarification Engine

Decides whether a classified, entity-extracted turn is actionable or needs a
follow-up question, and renders that question.

Decision order (first match wins):
1. Intent confidence below MIN_INTENT_CONFIDENCE -> ambiguous_intent
2. Required entities missing for the intent/action -> entity_missing
   (skipped for a bare command verb, which is handled by step 4)
3. Ambiguous pronouns, quantifiers or relative times -> context_needed
4. Too short, a bare command verb, or a verb without its object -> incomplete_command

The multi-turn dialog (attempt counting, forced routing) is driven by the
conversation manager; this engine is stateless.
"""
import logging
from typing import Any, Dict, List, Optional

from ..config import NLUConfig, config as default_config
from ..config.lexicon import (
    get_ambiguous_terms,
    get_bare_commands,
    get_incomplete_verbs,
    get_required_entities,
)
from ..data_types import (
    ClarificationAnalysis,
    EntityKind,
    EntityResult,
    Entities,
    GuidanceType,
    IntentResult,
)
from ..logging_config import log_function_call
from . import renderer

logger = logging.getLogger(__name__)

# Scalar entity -> list entity that also satisfies it
_PLURAL_OF = {
    EntityKind.ITEM_NAME.value: EntityKind.ITEMS.value,
    EntityKind.QUANTITY.value: EntityKind.QUANTITIES.value,
    EntityKind.PLATFORM.value: EntityKind.PLATFORMS.value,
    EntityKind.ACTION.value: EntityKind.ACTIONS.value,
}


def _has_entity(entities: Entities, name: str) -> bool:
    data = entities.to_dict()
    if data.get(name) is not None:
        return True
    plural = _PLURAL_OF.get(name)
    return bool(plural and data.get(plural))


class ClarificationEngine:
    """
    Stateless clarification decision and rendering.

    Example:
        >>> engine = ClarificationEngine()
        >>> analysis = engine.analyze("添加", intent_result, entity_result)
        >>> analysis.guidance_type
        <GuidanceType.INCOMPLETE_COMMAND: 'incomplete_command'>
    """

    def __init__(self, config: Optional[NLUConfig] = None):
        self.config = config or default_config
        self.ambiguous_terms = get_ambiguous_terms()
        self.bare_commands = {c.lower() for c in get_bare_commands()}
        self.required_entities = get_required_entities()
        self.incomplete_verbs = get_incomplete_verbs()

    @log_function_call()
    def analyze(
        self,
        utterance: str,
        intent_result: IntentResult,
        entity_result: EntityResult,
        context: Optional[Dict[str, Any]] = None,
        language: Optional[str] = None,
    ) -> ClarificationAnalysis:
        """
        Decide whether this turn needs clarification.

        Args:
            utterance: Raw (or combined) user text
            intent_result: Classifier output
            entity_result: Extractor output
            context: Optional conversation context
            language: Language for the generated questions

        Returns:
            ClarificationAnalysis
        """
        if not self.config.ENABLE_CLARIFICATION:
            return ClarificationAnalysis(
                needs_clarification=False,
                reason="Clarification disabled",
                confidence=1.0,
            )

        language = language or self.config.DEFAULT_LANGUAGE
        text = (utterance or "").strip().lower()
        intent = intent_result.intent
        entities = entity_result.entities
        bare = self.is_bare_command(text)

        analysis = ClarificationAnalysis(confidence=intent_result.confidence)

        if intent_result.confidence < self.config.MIN_INTENT_CONFIDENCE:
            analysis.needs_clarification = True
            analysis.reason = "Intent confidence too low"
            analysis.guidance_type = GuidanceType.AMBIGUOUS_INTENT
            analysis.suggested_questions = renderer.intent_questions(text, language)
            return analysis

        if not bare:
            missing = self.detect_missing_entities(intent, entities)
            if missing:
                analysis.needs_clarification = True
                analysis.reason = "Missing required information"
                analysis.missing_entities = missing
                analysis.guidance_type = GuidanceType.ENTITY_MISSING
                analysis.suggested_questions = renderer.entity_questions(missing, language)
                return analysis

        ambiguous = self.detect_ambiguous_terms(text)
        if ambiguous:
            analysis.needs_clarification = True
            analysis.reason = "Ambiguous expressions present"
            analysis.ambiguous_terms = ambiguous
            analysis.guidance_type = GuidanceType.CONTEXT_NEEDED
            analysis.suggested_questions = renderer.ambiguity_questions(ambiguous, language)
            return analysis

        if bare or self.is_incomplete_command(text, intent, entities):
            analysis.needs_clarification = True
            analysis.reason = "Incomplete command"
            analysis.guidance_type = GuidanceType.INCOMPLETE_COMMAND
            analysis.suggested_questions = renderer.completion_questions(intent, language)
            return analysis

        return analysis

    def is_bare_command(self, text: str) -> bool:
        """True when the whole utterance is a single command verb."""
        text = text.strip().lower()
        return len(text.split()) == 1 and text in self.bare_commands

    def detect_missing_entities(self, intent: str, entities: Entities) -> List[str]:
        """
        Required entities missing for the intent and the extracted action.

        Returns:
            Missing entity names in declaration order
        """
        per_action = self.required_entities.get(intent) or {}
        action = (entities.action or "").lower()
        required = per_action.get(action) or per_action.get(entities.action or "") or []
        return [name for name in required if not _has_entity(entities, name)]

    def detect_ambiguous_terms(self, text: str) -> List[str]:
        return [term for term in self.ambiguous_terms if term in text]

    def is_incomplete_command(self, text: str, intent: str, entities: Entities) -> bool:
        """
        Heuristic incompleteness check.

        True for input shorter than MIN_COMMAND_LENGTH, a bare command verb,
        or an object-taking verb whose object entity was not extracted.
        """
        if len(text) < self.config.MIN_COMMAND_LENGTH:
            return True
        if self.is_bare_command(text):
            return True

        rule = self.incomplete_verbs.get(intent)
        if rule:
            uses_verb = any(verb.lower() in text for verb in rule.get("verbs", []))
            if uses_verb and not _has_entity(entities, rule["object"]):
                return True
        return False

    def build_question(self, analysis: ClarificationAnalysis, language: Optional[str] = None) -> str:
        """Render the question text for an analysis."""
        return renderer.build_question(analysis, language or self.config.DEFAULT_LANGUAGE)

    def suggest_responses(self, analysis: ClarificationAnalysis, language: Optional[str] = None) -> List[str]:
        """Render suggested quick replies for an analysis."""
        return renderer.suggest_responses(analysis, language or self.config.DEFAULT_LANGUAGE)
