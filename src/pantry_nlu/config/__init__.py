"""
Config package.

Exposes the NLU settings object and the YAML-backed keyword tables.
"""

from .config import NLUConfig, config
from . import lexicon

__all__ = ["NLUConfig", "config", "lexicon"]
