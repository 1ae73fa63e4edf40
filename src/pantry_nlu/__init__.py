"""
Pantry NLU

Rule-based language understanding for the pantry assistant: intent
classification, entity extraction, clarification decisions and language
detection over YAML keyword tables.
"""

__version__ = "0.1.0"
