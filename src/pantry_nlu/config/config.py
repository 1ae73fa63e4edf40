"""
NLU Configuration

Centralized configuration for the rule-based language understanding tables.
All settings can be overridden via environment variables or keyword overrides.
"""
import os
from typing import Any, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class NLUConfig:
    """
    Central configuration for the NLU layer.

    Values are read from the environment when the instance is created, so a
    new instance picks up environment changes.

    Example:
        >>> from pantry_nlu.config import NLUConfig
        >>> NLUConfig().FALLBACK_INTENT
        'general_inquiry'

        # Override for a single component:
        >>> NLUConfig(ENABLE_CLARIFICATION=False).ENABLE_CLARIFICATION
        False
    """

    def __init__(self, **overrides: Any):
        # ====================================================================
        # Classification
        # ====================================================================

        self.FALLBACK_INTENT: str = os.getenv("FALLBACK_INTENT", "general_inquiry")
        """Intent returned when no keyword matches"""

        self.RULE_CONFIDENCE: float = float(os.getenv("RULE_CONFIDENCE", "0.7"))
        """Confidence reported by the rule-based entity extractor"""

        # ====================================================================
        # Clarification
        # ====================================================================

        self.ENABLE_CLARIFICATION: bool = _env_bool("ENABLE_CLARIFICATION", "true")
        """Ask follow-up questions for unclear input"""

        self.MIN_INTENT_CONFIDENCE: float = float(os.getenv("MIN_INTENT_CONFIDENCE", "0.5"))
        """Intent confidence below this triggers an ambiguous-intent clarification"""

        self.MIN_COMMAND_LENGTH: int = int(os.getenv("MIN_COMMAND_LENGTH", "3"))
        """Inputs shorter than this are treated as incomplete commands"""

        # ====================================================================
        # Language
        # ====================================================================

        self.DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "zh-CN")
        """Language used when detection is inconclusive"""

        self.LANGUAGE_CONFIDENCE_THRESHOLD: float = float(
            os.getenv("LANGUAGE_CONFIDENCE_THRESHOLD", "0.7"))
        """Detection below this falls back to DEFAULT_LANGUAGE"""

        self.LANGUAGE_FALLBACK_TO_DEFAULT: bool = _env_bool("LANGUAGE_FALLBACK_TO_DEFAULT", "true")
        """Fall back to DEFAULT_LANGUAGE on low-confidence detection"""

        # ====================================================================
        # Logging
        # ====================================================================

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        """Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"""

        self.LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")
        """Log format: 'json' (structured) or 'pretty' (readable)"""

        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE")
        """Optional: Write logs to file"""

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown NLU config setting: {key}")
            setattr(self, key, value)

    @classmethod
    def from_env(cls):
        """
        Create config from environment variables.

        Returns:
            New NLUConfig instance with current environment values
        """
        return cls()

    def summary(self) -> str:
        """
        Get configuration summary as formatted string.

        Returns:
            Multi-line string with all config values
        """
        lines = [
            "=" * 60,
            "Pantry NLU Configuration",
            "=" * 60,
            "",
            "Classification:",
            f"  Fallback Intent:    {self.FALLBACK_INTENT}",
            f"  Rule Confidence:    {self.RULE_CONFIDENCE}",
            "",
            "Clarification:",
            f"  Enabled:            {'Yes' if self.ENABLE_CLARIFICATION else 'No'}",
            f"  Min Confidence:     {self.MIN_INTENT_CONFIDENCE}",
            f"  Min Length:         {self.MIN_COMMAND_LENGTH}",
            "",
            "Language:",
            f"  Default:            {self.DEFAULT_LANGUAGE}",
            f"  Threshold:          {self.LANGUAGE_CONFIDENCE_THRESHOLD}",
            "",
            "Logging:",
            f"  Level:              {self.LOG_LEVEL}",
            f"  Format:             {self.LOG_FORMAT}",
            f"  File:               {self.LOG_FILE or 'None'}",
            "",
            "=" * 60,
        ]
        return "\n".join(lines)

    def __repr__(self):
        """String representation."""
        return f"<NLUConfig fallback={self.FALLBACK_INTENT} clarify={self.ENABLE_CLARIFICATION}>"


# Global config instance
config = NLUConfig()
