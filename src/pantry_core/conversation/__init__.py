from .manager import ConversationManager
from .models import ConversationResult

__all__ = ["ConversationManager", "ConversationResult"]
