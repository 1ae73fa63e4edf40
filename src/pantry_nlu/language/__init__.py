from .detector import LanguageDetector

__all__ = ["LanguageDetector"]
