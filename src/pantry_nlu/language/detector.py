"""
Language Detector

Scores zh-CN and en-US indicators in the text:
- script characters x2
- keyword hits +1 each
- punctuation x0.5

The best-scoring language wins with confidence = its share of the total.
Empty input, no indicators, symbol-only input and low-confidence results all
fall back to the configured default language.
"""
import logging
import re
from typing import Dict, List, Optional, Pattern, Tuple

from ..config import NLUConfig, config as default_config
from ..config.lexicon import get_language_patterns, get_supported_languages
from ..data_types import LanguageDetection

logger = logging.getLogger(__name__)

CHARACTER_WEIGHT = 2.0
KEYWORD_WEIGHT = 1.0
PUNCTUATION_WEIGHT = 0.5

EMPTY_CONFIDENCE = 0.5
NO_INDICATOR_CONFIDENCE = 0.3
LOW_CONFIDENCE_FALLBACK = 0.5

_SYMBOLS_ONLY = re.compile(r"""^[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?~`\s]*$""")


class LanguageDetector:
    """Rule-based zh-CN / en-US detector."""

    def __init__(self, config: Optional[NLUConfig] = None):
        self.config = config or default_config
        self._patterns: Dict[str, Tuple[Pattern, Pattern, List[str]]] = {}
        for language in get_supported_languages():
            cfg = get_language_patterns(language) or {}
            self._patterns[language] = (
                re.compile(cfg.get("characters", "(?!)")),
                re.compile(cfg.get("punctuation", "(?!)")),
                [str(k).lower() for k in cfg.get("keywords", [])],
            )

    @property
    def supported_languages(self) -> List[str]:
        return list(self._patterns.keys())

    @property
    def default_language(self) -> str:
        return self.config.DEFAULT_LANGUAGE

    def is_supported(self, language: str) -> bool:
        return language in self._patterns

    def score(self, text: str) -> Dict[str, float]:
        """Raw indicator score per language."""
        clean = text.strip().lower()
        scores: Dict[str, float] = {}
        for language, (characters, punctuation, keywords) in self._patterns.items():
            total = CHARACTER_WEIGHT * len(characters.findall(clean))
            total += KEYWORD_WEIGHT * sum(1 for kw in keywords if kw in clean)
            total += PUNCTUATION_WEIGHT * len(punctuation.findall(clean))
            scores[language] = total
        return scores

    def detect(self, text: str) -> LanguageDetection:
        """
        Detect the language of a text.

        Args:
            text: Raw user text

        Returns:
            LanguageDetection with language, confidence and reasoning
        """
        if not text or not text.strip():
            return LanguageDetection(
                language=self.default_language,
                confidence=EMPTY_CONFIDENCE,
                reasoning="Empty input, using default language",
            )

        scores = self.score(text)
        total = sum(scores.values())
        if total == 0:
            return LanguageDetection(
                language=self.default_language,
                confidence=NO_INDICATOR_CONFIDENCE,
                reasoning="No language indicators found, using default",
            )

        if _SYMBOLS_ONLY.match(text.strip()):
            return LanguageDetection(
                language=self.default_language,
                confidence=NO_INDICATOR_CONFIDENCE,
                reasoning="Input contains only symbols/punctuation, using default",
            )

        # max() keeps the first language in table order on ties
        detected = max(scores, key=lambda lang: scores[lang])
        confidence = scores[detected] / total
        summary = ", ".join(f"{lang}: {scores[lang]:g}" for lang in scores)

        if confidence < self.config.LANGUAGE_CONFIDENCE_THRESHOLD and self.config.LANGUAGE_FALLBACK_TO_DEFAULT:
            return LanguageDetection(
                language=self.default_language,
                confidence=LOW_CONFIDENCE_FALLBACK,
                reasoning=f"Low confidence ({confidence:.2f}), falling back to default",
            )

        logger.debug(
            "Language detected",
            extra={'detected_language': detected, 'confidence': round(confidence, 3)}
        )
        return LanguageDetection(
            language=detected,
            confidence=round(confidence, 4),
            reasoning=f"Indicators {summary}",
        )
