"""
Lexicon Configuration

Loads the keyword tables (intents, entity lexicons, clarification terms,
language indicators) and the localized clarification templates from YAML.
"""
from pathlib import Path
from typing import Dict, Any, List, Optional
import yaml
import logging

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).resolve().parent / "data"

# Cache for loaded YAML files, keyed by file name
_YAML_CACHE: Dict[str, Dict[str, Any]] = {}


def _load_yaml(file_name: str) -> Dict[str, Any]:
    """
    Load a YAML file from config/data (cached).

    Raises:
        FileNotFoundError: If the file is not found
    """
    cached = _YAML_CACHE.get(file_name)
    if cached is not None:
        return cached

    path = _DATA_DIR / file_name
    if not path.exists():
        raise FileNotFoundError(
            f"{file_name} not found. Tried:\n"
            f"  - {path}\n"
            f"Please ensure {file_name} exists in this location."
        )

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    logger.debug(f"Loaded {file_name}", extra={'sections': len(data)})
    _YAML_CACHE[file_name] = data
    return data


def load_lexicon() -> Dict[str, Any]:
    """
    Load lexicon.yaml (cached).

    Returns:
        Dictionary containing all keyword tables
    """
    return _load_yaml("lexicon.yaml")


def load_clarification_templates() -> Dict[str, Any]:
    """
    Load clarification_templates.yaml (cached).

    Returns:
        Dictionary of localized clarification texts
    """
    return _load_yaml("clarification_templates.yaml")


def clear_cache() -> None:
    """Drop cached YAML so the next load re-reads from disk."""
    _YAML_CACHE.clear()


def get_intent_keywords() -> Dict[str, List[str]]:
    """
    Get intent keyword sets in table order.

    Returns:
        Ordered mapping of intent label -> keywords (lowercased)
    """
    intents = load_lexicon().get("intents", {})
    return {
        label: [kw.lower() for kw in (cfg or {}).get("keywords", []) if isinstance(kw, str)]
        for label, cfg in intents.items()
    }


def get_entity_lexicon(kind: str) -> List[str]:
    """
    Get one entity lexicon (items, actions, platforms, units, time_periods).

    Args:
        kind: Section name under ``entities``

    Returns:
        List of terms in scan order
    """
    entities = load_lexicon().get("entities", {})
    return [str(term) for term in entities.get(kind, [])]


def get_action_agents() -> Dict[str, str]:
    """Get action verbs mapped to the worker agent type that handles them."""
    return {str(k).lower(): str(v) for k, v in load_lexicon().get("action_agents", {}).items()}


def get_ambiguous_terms() -> List[str]:
    """Get pronouns, quantifiers and time-relatives that need context."""
    return list(load_lexicon().get("clarification", {}).get("ambiguous_terms", []))


def get_bare_commands() -> List[str]:
    """Get command verbs that are incomplete when used alone."""
    return list(load_lexicon().get("clarification", {}).get("bare_commands", []))


def get_incomplete_verbs() -> Dict[str, Dict[str, Any]]:
    """
    Get verbs that need an object entity, per intent.

    Returns:
        {intent: {"verbs": [...], "object": entity_name}}
    """
    return load_lexicon().get("clarification", {}).get("incomplete_verbs", {})


def get_required_entities() -> Dict[str, Dict[str, List[str]]]:
    """
    Get required entities per intent and action.

    Returns:
        {intent: {action: [entity, ...]}}
    """
    return load_lexicon().get("clarification", {}).get("required_entities", {})


def get_language_patterns(language: str) -> Optional[Dict[str, Any]]:
    """
    Get detection patterns for one language.

    Returns:
        Dict with ``characters``, ``punctuation`` regexes and ``keywords``,
        or None for an unknown language
    """
    return load_lexicon().get("languages", {}).get(language)


def get_supported_languages() -> List[str]:
    """Get language codes with detection patterns, in table order."""
    return list(load_lexicon().get("languages", {}).keys())
