"""
Agent Router

Chooses the worker agent for a classified utterance.

Decision order:
1. Intents owned by an agent go to that agent (agent_table.INTENT_AGENTS)
2. Query, help and fallback intents go to the agent implied by the entities
3. Otherwise the agent this conversation was last routed to
4. Otherwise the fallback agent at minimal confidence

The chosen agent is then checked against the available agents and, once
workers are registered, against the agent registry. Every
decision is remembered per conversation in an injected key-value table.
"""
from collections import Counter
from typing import Any, Dict, Iterable, Optional, Tuple
import logging

from pantry_nlu.data_types import Entities
from pantry_nlu.logging_config import log_function_call

from ..agents.base import AgentRegistry, AgentType
from ..config import CoreConfig
from ..state.tables import InMemoryTable, KeyValueTable
from .agent_table import agents_implied_by_entities, get_agent_for_intent, get_suggested_actions
from .models import RoutingContext, RoutingMemory, RoutingResult

logger = logging.getLogger(__name__)

MIN_ROUTING_CONFIDENCE = 0.3
ERROR_CONFIDENCE = 0.2
CONFIDENCE_PENALTY = 0.2


def _downgrade(confidence: float) -> float:
    return max(MIN_ROUTING_CONFIDENCE, round(confidence - CONFIDENCE_PENALTY, 4))


class AgentRouter:
    """
    Routes utterances to worker agents.

    Example:
        >>> router = AgentRouter()
        >>> result = await router.route("抽纸消耗1包", RoutingContext(
        ...     conversation_id="c1", user_id="u1",
        ...     current_context={"intent": "inventory_management", "confidence": 0.7}))
        >>> result.target_agent
        <AgentType.INVENTORY: 'inventory'>
    """

    def __init__(
        self,
        config: Optional[CoreConfig] = None,
        memory_table: Optional[KeyValueTable[RoutingMemory]] = None,
        available_agents: Optional[Iterable[str]] = None,
        registry: Optional[AgentRegistry] = None,
    ):
        self.config = config or CoreConfig()
        self.memory_table: KeyValueTable[RoutingMemory] = (
            memory_table if memory_table is not None else InMemoryTable()
        )
        self.registry = registry
        self.fallback_agent = AgentType(self.config.FALLBACK_AGENT)

        if available_agents is None:
            available_agents = self.config.AVAILABLE_AGENTS
        self.available_agents = set(available_agents) if available_agents is not None else None

        self._total_decisions = 0
        self._confidence_sum = 0.0
        self._distribution: Counter = Counter()

        logger.info("AgentRouter initialized", extra={
            'fallback_agent': self.fallback_agent.value,
            'available_agents': sorted(self.available_agents) if self.available_agents else 'all',
        })

    def is_available(self, agent: AgentType) -> bool:
        """
        True when the agent is in the configured available set and, once any
        worker has been registered, when the registry has an agent of that type.
        """
        if self.available_agents is not None and agent.value not in self.available_agents:
            return False
        if self.registry is not None and len(self.registry) > 0:
            return self.registry.has_agent(agent.value)
        return True

    @log_function_call(log_result=False)
    async def route(self, utterance: str, routing_context: RoutingContext) -> RoutingResult:
        """
        Route an utterance.

        Never raises: an internal error yields the fallback agent at
        confidence 0.2.

        Args:
            utterance: Text being routed
            routing_context: Conversation, classification and entity context

        Returns:
            RoutingResult
        """
        conversation_id = routing_context.conversation_id
        try:
            memory = await self.memory_table.get(conversation_id) or RoutingMemory(conversation_id)
            result = self._decide(routing_context, memory)
        except Exception as e:
            logger.error(
                f"Routing failed for conversation {conversation_id}: {e}",
                extra={'conversation_id': conversation_id, 'error_type': type(e).__name__},
                exc_info=True,
            )
            self._count(self.fallback_agent, ERROR_CONFIDENCE)
            return RoutingResult(
                target_agent=self.fallback_agent,
                confidence=ERROR_CONFIDENCE,
                reasoning=f"Routing error, using fallback agent: {e}",
                suggested_actions=get_suggested_actions(self.fallback_agent, routing_context.language),
                contextual_info={'error': str(e)},
            )

        self._count(result.target_agent, result.confidence)
        await self._remember(memory, routing_context.intent, result)

        logger.info(
            f"Routed to {result.target_agent.value}",
            extra={
                'conversation_id': conversation_id,
                'intent': routing_context.intent,
                'target_agent': result.target_agent.value,
                'confidence': result.confidence,
            }
        )
        return result

    def _decide(self, routing_context: RoutingContext, memory: RoutingMemory) -> RoutingResult:
        intent = routing_context.intent
        entities = routing_context.entities
        target, confidence, reasoning = self._select_target(
            intent, routing_context.confidence, entities, routing_context, memory
        )

        if not self.is_available(target):
            reasoning = (f"{reasoning}; {target.value} agent unavailable, "
                         f"using {self.fallback_agent.value}")
            target = self.fallback_agent
            confidence = _downgrade(confidence)

        return RoutingResult(
            target_agent=target,
            confidence=min(1.0, max(0.0, confidence)),
            reasoning=reasoning,
            extracted_entities=entities,
            suggested_actions=get_suggested_actions(target, routing_context.language),
            contextual_info={
                'intent': intent,
                'previous_agent': memory.last_agent.value if memory.last_agent else None,
            },
        )

    def _select_target(
        self,
        intent: Optional[str],
        confidence: float,
        entities: Entities,
        routing_context: RoutingContext,
        memory: RoutingMemory,
    ) -> Tuple[AgentType, float, str]:
        owner = get_agent_for_intent(intent)
        if owner is not None:
            return owner, confidence, f"Intent '{intent}' is handled by the {owner.value} agent"

        implied = agents_implied_by_entities(entities)
        if len(implied) == 1:
            return implied[0], confidence, f"Entities point to the {implied[0].value} agent"
        if len(implied) > 1:
            names = ", ".join(a.value for a in implied)
            return implied[0], _downgrade(confidence), f"Entities point to several agents ({names})"

        prior = self._prior_agent(routing_context, memory)
        if prior is not None:
            return prior, confidence, f"Continuing with the {prior.value} agent from earlier turns"

        return (
            self.fallback_agent,
            min(confidence, MIN_ROUTING_CONFIDENCE),
            f"No agent identified for intent '{intent}', using the {self.fallback_agent.value} agent",
        )

    @staticmethod
    def _prior_agent(routing_context: RoutingContext, memory: RoutingMemory) -> Optional[AgentType]:
        if memory.last_agent is not None:
            return memory.last_agent
        for turn in reversed(routing_context.session_history):
            try:
                return AgentType(turn.agent_id)
            except ValueError:
                continue
        return None

    async def _remember(self, memory: RoutingMemory, intent: Optional[str], result: RoutingResult) -> None:
        memory.record(intent, result, self.config.ROUTING_HISTORY_SIZE)
        try:
            await self.memory_table.set(memory.conversation_id, memory)
        except Exception as e:
            logger.error(
                f"Failed to persist routing memory for {memory.conversation_id}: {e}",
                extra={'conversation_id': memory.conversation_id},
                exc_info=True,
            )

    def _count(self, agent: AgentType, confidence: float) -> None:
        self._total_decisions += 1
        self._confidence_sum += confidence
        self._distribution[agent.value] += 1

    async def get_routing_context(self, conversation_id: str) -> Optional[RoutingMemory]:
        """Rolling routing memory for a conversation, or None."""
        return await self.memory_table.get(conversation_id)

    async def forget(self, conversation_id: str) -> None:
        await self.memory_table.delete(conversation_id)

    def get_routing_stats(self) -> Dict[str, Any]:
        """
        Routing statistics since this router was created.

        Returns:
            Dict with registered_agents, registered_types, total_decisions,
            average_confidence and agent_distribution
        """
        if self.registry is not None:
            registered = len(self.registry)
        elif self.available_agents is not None:
            registered = len(self.available_agents)
        else:
            registered = len(AgentType)

        average = self._confidence_sum / self._total_decisions if self._total_decisions else 0.0
        return {
            'registered_agents': registered,
            'registered_types': self.registry.available_types() if self.registry is not None else [],
            'total_decisions': self._total_decisions,
            'average_confidence': round(average, 4),
            'agent_distribution': dict(self._distribution),
        }

    async def shutdown(self) -> None:
        logger.info("AgentRouter shutting down", extra=self.get_routing_stats())
