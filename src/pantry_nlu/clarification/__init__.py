"""
Clarification package.

Decides when a turn needs a follow-up question and renders it in the
conversation's language.
"""

from .engine import ClarificationEngine
from .renderer import build_question, suggest_responses

__all__ = ["ClarificationEngine", "build_question", "suggest_responses"]
