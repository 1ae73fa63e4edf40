"""
Core Configuration

Settings for the orchestration core. All settings can be overridden via
environment variables (loaded from .env / .env.local by pantry_core.app) or
keyword overrides.
"""
import os
from typing import Any, List, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str) -> Optional[List[str]]:
    raw = os.getenv(name)
    if not raw:
        return None
    return [part.strip() for part in raw.split(",") if part.strip()]


class CoreConfig:
    """
    Central configuration for the orchestration core.

    Example:
        >>> from pantry_core.config import CoreConfig
        >>> CoreConfig().MAX_CONTEXT_HISTORY
        20
        >>> CoreConfig(MAX_CLARIFICATION_ATTEMPTS=5).MAX_CLARIFICATION_ATTEMPTS
        5
    """

    def __init__(self, **overrides: Any):
        # ====================================================================
        # Conversation
        # ====================================================================

        self.MAX_CONTEXT_HISTORY: int = int(os.getenv("MAX_CONTEXT_HISTORY", "20"))
        """Turns kept in a conversation's session history (oldest dropped)"""

        self.MAX_CLARIFICATION_ATTEMPTS: int = int(os.getenv("MAX_CLARIFICATION_ATTEMPTS", "3"))
        """Clarification questions asked before forcing best-effort routing"""

        self.ENABLE_MULTILINGUAL: bool = _env_bool("ENABLE_MULTILINGUAL", "true")
        """Detect the utterance language and answer in it"""

        self.LANGUAGE_UPDATE_CONFIDENCE: float = float(os.getenv("LANGUAGE_UPDATE_CONFIDENCE", "0.8"))
        """Detection confidence above which the preferred language is replaced"""

        self.CONVERSATION_TTL_SECONDS: int = int(os.getenv("CONVERSATION_TTL_SECONDS", str(24 * 3600)))
        """TTL for persisted conversation state"""

        # ====================================================================
        # Routing
        # ====================================================================

        self.FALLBACK_AGENT: str = os.getenv("FALLBACK_AGENT", "inventory")
        """Agent used when nothing else identifies a target"""

        self.ROUTING_HISTORY_SIZE: int = int(os.getenv("ROUTING_HISTORY_SIZE", "10"))
        """Routing decisions kept per conversation"""

        self.AVAILABLE_AGENTS: Optional[List[str]] = _env_list("AVAILABLE_AGENTS")
        """Comma-separated agent types allowed as routing targets (None = all)"""

        # ====================================================================
        # Workflows
        # ====================================================================

        self.MAX_CONCURRENT_WORKFLOWS: int = int(os.getenv("MAX_CONCURRENT_WORKFLOWS", "10"))
        """Executions allowed in flight; extra executions fail fast"""

        self.DEFAULT_STEP_TIMEOUT_MS: int = int(os.getenv("DEFAULT_STEP_TIMEOUT_MS", "300000"))
        """Deadline per step when the step does not set one"""

        self.DEFAULT_MAX_RETRIES: int = int(os.getenv("DEFAULT_MAX_RETRIES", "3"))
        """Retries for an agent task when the step does not set a policy"""

        self.DEFAULT_BACKOFF_MS: int = int(os.getenv("DEFAULT_BACKOFF_MS", "1000"))
        """Base backoff between agent task retries"""

        self.WORKFLOW_STATE_TTL_SECONDS: int = int(os.getenv("WORKFLOW_STATE_TTL_SECONDS", str(7 * 24 * 3600)))
        """TTL for persisted workflow state"""

        # ====================================================================
        # State store
        # ====================================================================

        self.REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
        """Redis connection URL; in-memory store is used when unset"""

        self.STATE_KEY_PREFIX: str = os.getenv("STATE_KEY_PREFIX", "pantry")
        """Prefix for every persisted key"""

        self.CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))
        """Default TTL for cache entries"""

        # ====================================================================
        # Logging
        # ====================================================================

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")
        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE")

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown core config setting: {key}")
            setattr(self, key, value)

    @classmethod
    def from_env(cls):
        """Create config from the current environment."""
        return cls()

    def summary(self) -> str:
        """
        Get configuration summary as formatted string.

        Returns:
            Multi-line string with the main config values
        """
        lines = [
            "=" * 60,
            "Pantry Core Configuration",
            "=" * 60,
            "",
            "Conversation:",
            f"  Max History:        {self.MAX_CONTEXT_HISTORY}",
            f"  Max Clarifications: {self.MAX_CLARIFICATION_ATTEMPTS}",
            f"  Multilingual:       {'Yes' if self.ENABLE_MULTILINGUAL else 'No'}",
            "",
            "Routing:",
            f"  Fallback Agent:     {self.FALLBACK_AGENT}",
            f"  Available Agents:   {', '.join(self.AVAILABLE_AGENTS) if self.AVAILABLE_AGENTS else 'all'}",
            "",
            "Workflows:",
            f"  Max Concurrent:     {self.MAX_CONCURRENT_WORKFLOWS}",
            f"  Step Timeout (ms):  {self.DEFAULT_STEP_TIMEOUT_MS}",
            f"  Retries / Backoff:  {self.DEFAULT_MAX_RETRIES} / {self.DEFAULT_BACKOFF_MS}ms",
            "",
            "State:",
            f"  Backend:            {'redis' if self.REDIS_URL else 'memory'}",
            f"  Cache TTL (s):      {self.CACHE_TTL_SECONDS}",
            "",
            "=" * 60,
        ]
        return "\n".join(lines)

    def __repr__(self):
        return f"<CoreConfig history={self.MAX_CONTEXT_HISTORY} redis={bool(self.REDIS_URL)}>"
