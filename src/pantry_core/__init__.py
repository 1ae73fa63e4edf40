"""
Pantry Core - Conversation and Routing Orchestration

Turns utterances into routed agent actions:
- Conversation manager with multi-turn clarification dialog (conversation/)
- Agent router with rolling per-conversation memory (routing/)
- Sequential workflow engine over worker agents (workflows/)
- Conversation/workflow state store, in-memory or Redis (state/)
"""

from pantry_core.config import CoreConfig
from pantry_core.agents import AgentRegistry, AgentType, Task, WorkerAgent
from pantry_core.conversation import ConversationManager, ConversationResult
from pantry_core.routing import AgentRouter, RoutingContext, RoutingResult
from pantry_core.workflows import WorkflowDefinition, WorkflowEngine, WorkflowResult, WorkflowStep

__version__ = "0.1.0"

__all__ = [
    "AgentRegistry",
    "AgentRouter",
    "AgentType",
    "ConversationManager",
    "ConversationResult",
    "CoreConfig",
    "RoutingContext",
    "RoutingResult",
    "Task",
    "WorkerAgent",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowResult",
    "WorkflowStep",
]
