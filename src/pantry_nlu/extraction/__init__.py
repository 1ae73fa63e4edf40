from .entity_extractor import EntityExtractor

__all__ = ["EntityExtractor"]
