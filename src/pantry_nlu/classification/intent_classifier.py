"""
Intent Classifier

Keyword-scoring classifier over a fixed, ordered intent table.

Scoring:
- Count case-insensitive substring matches of each label's keywords
- The label with the most matches wins; ties keep the first label in table order
- confidence = min(0.9, 0.5 + 0.1 * matches)
- No match at all -> fallback intent at 0.5
- Internal error -> fallback intent at 0.3 (never raises)
"""
import logging
from typing import Any, Dict, List, Optional

from ..config import NLUConfig, config as default_config
from ..config.lexicon import get_intent_keywords
from ..data_types import Entities, IntentResult
from ..extraction.entity_extractor import EntityExtractor
from ..logging_config import log_function_call

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
PER_MATCH_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.9
ERROR_CONFIDENCE = 0.3


class IntentClassifier:
    """
    Rule-based intent classifier.

    Example:
        >>> classifier = IntentClassifier()
        >>> result = classifier.classify("抽纸消耗1包")
        >>> result.intent
        'inventory_management'
    """

    def __init__(
        self,
        config: Optional[NLUConfig] = None,
        extractor: Optional[EntityExtractor] = None,
        keyword_table: Optional[Dict[str, List[str]]] = None,
    ):
        """
        Initialize classifier.

        Args:
            config: NLU settings (fallback intent)
            extractor: Extractor used for the basic entities on the result
            keyword_table: Ordered {label: keywords}; defaults to lexicon.yaml
        """
        self.config = config or default_config
        self.extractor = extractor or EntityExtractor(self.config)
        table = keyword_table if keyword_table is not None else get_intent_keywords()
        self._table: Dict[str, List[str]] = {
            label: [kw.lower() for kw in keywords] for label, keywords in table.items()
        }

    @property
    def fallback_intent(self) -> str:
        return self.config.FALLBACK_INTENT

    @property
    def labels(self) -> List[str]:
        """All labels this classifier can return, fallback included."""
        return list(self._table.keys()) + [self.fallback_intent]

    @log_function_call()
    def classify(self, utterance: str, context: Optional[Dict[str, Any]] = None) -> IntentResult:
        """
        Classify an utterance.

        Args:
            utterance: Raw user text
            context: Optional conversation context (unused by the keyword rules)

        Returns:
            IntentResult with a label from ``labels`` and confidence in [0, 1]
        """
        try:
            return self._classify(utterance or "")
        except Exception as e:
            logger.warning(
                f"Intent classification failed, using fallback: {e}",
                extra={'error_type': type(e).__name__}
            )
            return IntentResult(
                intent=self.fallback_intent,
                confidence=ERROR_CONFIDENCE,
                entities=Entities(),
                reasoning=f"Classification error: {e}",
            )

    def _classify(self, utterance: str) -> IntentResult:
        text = utterance.strip().lower()
        entities = self.extractor.extract(utterance).entities if text else Entities()

        best_label: Optional[str] = None
        best_matches: List[str] = []
        scores: Dict[str, int] = {}

        for label, keywords in self._table.items():
            matched = [kw for kw in keywords if kw and kw in text]
            scores[label] = len(matched)
            # Strictly greater: ties keep the earlier label
            if len(matched) > len(best_matches):
                best_label = label
                best_matches = matched

        if best_label is None:
            return IntentResult(
                intent=self.fallback_intent,
                confidence=BASE_CONFIDENCE,
                entities=entities,
                reasoning="No intent keywords matched",
                contextual_info={'scores': scores},
            )

        confidence = min(MAX_CONFIDENCE, BASE_CONFIDENCE + PER_MATCH_CONFIDENCE * len(best_matches))
        return IntentResult(
            intent=best_label,
            confidence=round(confidence, 2),
            entities=entities,
            reasoning=f"Matched {len(best_matches)} keyword(s) for {best_label}: {', '.join(best_matches)}",
            contextual_info={'matched_keywords': best_matches, 'scores': scores},
        )
