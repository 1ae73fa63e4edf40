"""
Clarification Template Renderer

Deterministic rendering of localized clarification questions and suggested
replies. Texts live in config/data/clarification_templates.yaml; this module
only selects and fills them.
"""
from typing import Any, Dict, List, Optional

from ..config.lexicon import load_clarification_templates
from ..data_types import ClarificationAnalysis, GuidanceType

DEFAULT_LANGUAGE = "zh-CN"


def _localized(entry: Dict[str, Any], language: str) -> Any:
    if language in entry:
        return entry[language]
    return entry[DEFAULT_LANGUAGE]


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def render_header(guidance_type: GuidanceType, language: str = DEFAULT_LANGUAGE) -> str:
    """
    Render the opening sentence for a guidance type.

    Raises:
        KeyError: If no header is configured for the guidance type
    """
    headers = load_clarification_templates()["headers"]
    return _localized(headers[guidance_type.value], language)


def intent_questions(utterance: str, language: str = DEFAULT_LANGUAGE) -> List[str]:
    """
    Questions for an unclear intent, keyed off salient verbs.

    The first rule whose trigger appears in the utterance wins; otherwise the
    generic pair is returned.
    """
    table = _localized(load_clarification_templates()["intent_questions"], language)
    text = (utterance or "").lower()
    for rule in table.get("rules", []):
        if any(trigger.lower() in text for trigger in rule.get("triggers", [])):
            return list(rule["questions"])
    return list(table["default"])


def entity_questions(missing_entities: List[str], language: str = DEFAULT_LANGUAGE) -> List[str]:
    """One question per missing entity."""
    table = load_clarification_templates()["entity_questions"]
    questions = []
    for entity in missing_entities:
        if entity in table:
            questions.append(_localized(table[entity], language))
        else:
            questions.append(_localized(table["default"], language).format(entity=entity))
    return _dedupe(questions)


def ambiguity_questions(ambiguous_terms: List[str], language: str = DEFAULT_LANGUAGE) -> List[str]:
    """Questions resolving pronouns, vague quantities and relative times."""
    table = load_clarification_templates()["ambiguity_questions"]
    questions = []
    for term in ambiguous_terms:
        for rule in table["rules"]:
            if term in rule["terms"]:
                questions.append(_localized(rule, language))
                break
        else:
            questions.append(_localized(table["default"], language).format(term=term))
    return _dedupe(questions)


def completion_questions(intent: str, language: str = DEFAULT_LANGUAGE) -> List[str]:
    """Question asking for the rest of an incomplete command."""
    table = load_clarification_templates()["completion_questions"]
    entry = table.get(intent, table["default"])
    return [_localized(entry, language)]


def suggest_responses(
    analysis: ClarificationAnalysis,
    language: str = DEFAULT_LANGUAGE
) -> List[str]:
    """
    Suggested quick replies for a clarification.

    Args:
        analysis: Clarification decision
        language: Target language code

    Returns:
        List of suggested replies (may be empty)
    """
    table = load_clarification_templates()["suggestions"]
    guidance = analysis.guidance_type

    if guidance == GuidanceType.ENTITY_MISSING:
        per_entity = table["entity_missing"]
        suggestions: List[str] = []
        for entity in analysis.missing_entities:
            if entity in per_entity:
                suggestions.extend(str(s) for s in _localized(per_entity[entity], language))
        return suggestions

    entry = table.get(guidance.value)
    if not entry:
        return []
    return [str(s) for s in _localized(entry, language)]


def build_question(
    analysis: ClarificationAnalysis,
    language: Optional[str] = None
) -> str:
    """
    Render the full clarification question: header plus suggested questions.

    Args:
        analysis: Clarification decision
        language: Target language code (defaults to zh-CN)

    Returns:
        Question text shown to the user
    """
    language = language or DEFAULT_LANGUAGE
    question = render_header(analysis.guidance_type, language)
    if analysis.suggested_questions:
        question += "\n\n" + "\n".join(analysis.suggested_questions)
    return question
