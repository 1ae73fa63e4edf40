"""
Entity Extractor

Lexicon and number based extraction of the structured fields the router and
the clarification engine work with.

Each extractor is independent:
- digits             -> quantities (+ quantity when exactly one number)
- item lexicon       -> items (+ item_name, first match)
- action lexicon     -> actions (+ action, first match)
- platform lexicon   -> platforms (+ platform, first match)
- unit lexicon       -> unit (first match, then stop)
- time-period lexicon -> time_period (first match, then stop)
"""
import logging
import re
from typing import List, Optional

from ..config import NLUConfig, config as default_config
from ..config.lexicon import get_entity_lexicon
from ..data_types import Entities, EntityResult, ExtractedField

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.5

_NUMBER_PATTERN = re.compile(r"\d+")


class EntityExtractor:
    """Rule-based entity extractor. Never raises."""

    def __init__(self, config: Optional[NLUConfig] = None):
        self.config = config or default_config
        self.items = [t.lower() for t in get_entity_lexicon("items")]
        self.actions = [t.lower() for t in get_entity_lexicon("actions")]
        self.platforms = [t.lower() for t in get_entity_lexicon("platforms")]
        self.units = [t.lower() for t in get_entity_lexicon("units")]
        self.time_periods = [t.lower() for t in get_entity_lexicon("time_periods")]
        # Platform names such as "1688" must not be read as quantities
        self._numeric_platforms = [p for p in self.platforms if _NUMBER_PATTERN.search(p)]

    def extract(self, utterance: str) -> EntityResult:
        """
        Extract entities from an utterance.

        Args:
            utterance: Raw user text

        Returns:
            EntityResult; absent fields are omitted, never null
        """
        try:
            return self._extract(utterance or "")
        except Exception as e:
            logger.warning(
                f"Entity extraction failed, using fallback: {e}",
                extra={'error_type': type(e).__name__}
            )
            return EntityResult(entities=Entities(), confidence=FALLBACK_CONFIDENCE, fields=[])

    def _extract(self, utterance: str) -> EntityResult:
        text = utterance.strip().lower()
        entities = Entities()
        if not text:
            return EntityResult(entities=entities, confidence=self.config.RULE_CONFIDENCE)

        number_text = text
        for platform in self._numeric_platforms:
            number_text = number_text.replace(platform, " ")
        numbers = [int(n) for n in _NUMBER_PATTERN.findall(number_text)]
        if numbers:
            entities.quantities = numbers
            if len(numbers) == 1:
                entities.quantity = numbers[0]

        items = self._match_all(text, self.items)
        if items:
            entities.items = items
            entities.item_name = items[0]

        actions = self._match_all(text, self.actions)
        if actions:
            entities.actions = actions
            entities.action = actions[0]

        platforms = self._match_all(text, self.platforms)
        if platforms:
            entities.platforms = platforms
            entities.platform = platforms[0]

        entities.unit = self._match_first(text, self.units)
        entities.time_period = self._match_first(text, self.time_periods)

        confidence = self.config.RULE_CONFIDENCE
        fields = [
            ExtractedField(field_name=name, value=value, confidence=confidence)
            for name, value in entities.to_dict().items()
        ]
        return EntityResult(entities=entities, confidence=confidence, fields=fields)

    @staticmethod
    def _match_all(text: str, lexicon: List[str]) -> List[str]:
        return [term for term in lexicon if term in text]

    @staticmethod
    def _match_first(text: str, lexicon: List[str]) -> Optional[str]:
        for term in lexicon:
            if term in text:
                return term
        return None
