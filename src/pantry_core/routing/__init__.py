from .agent_router import AgentRouter
from .agent_table import INTENT_AGENTS, agents_implied_by_entities, get_agent_for_intent
from .models import RoutingContext, RoutingMemory, RoutingResult

__all__ = [
    "AgentRouter",
    "INTENT_AGENTS",
    "RoutingContext",
    "RoutingMemory",
    "RoutingResult",
    "agents_implied_by_entities",
    "get_agent_for_intent",
]
