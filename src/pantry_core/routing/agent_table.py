"""
Agent Table

Maps intents and entities to worker agent types.

This is a pure routing table with no side effects: it only performs
semantic signal -> agent identifier mapping. The stateful parts (rolling
context, availability, confidence adjustments) live in AgentRouter.
"""
from typing import Dict, List, Optional

from pantry_nlu.config.lexicon import get_action_agents
from pantry_nlu.data_types import Entities

from ..agents.base import AgentType

# Intent name -> agent type
INTENT_AGENTS: Dict[str, AgentType] = {
    "inventory_management": AgentType.INVENTORY,
    "procurement_management": AgentType.PROCUREMENT,
    "financial_analysis": AgentType.FINANCE,
    "notification_management": AgentType.NOTIFICATION,
}

# Suggested follow-up actions per agent, per language
SUGGESTED_ACTIONS: Dict[str, Dict[AgentType, List[str]]] = {
    "zh-CN": {
        AgentType.INVENTORY: ["查询库存", "更新库存"],
        AgentType.PROCUREMENT: ["查看订单", "生成建议"],
        AgentType.FINANCE: ["查看报告", "分析支出"],
        AgentType.NOTIFICATION: ["发送通知", "设置提醒"],
    },
    "en-US": {
        AgentType.INVENTORY: ["query inventory", "update inventory"],
        AgentType.PROCUREMENT: ["view orders", "generate suggestions"],
        AgentType.FINANCE: ["view reports", "analyze spending"],
        AgentType.NOTIFICATION: ["send notification", "set reminder"],
    },
}


def get_agent_for_intent(intent_name: Optional[str]) -> Optional[AgentType]:
    """
    Get the agent type that owns an intent.

    Args:
        intent_name: Intent label (e.g., "inventory_management")

    Returns:
        AgentType, or None for query/help/fallback intents
    """
    if not intent_name:
        return None
    return INTENT_AGENTS.get(intent_name)


def agents_implied_by_entities(entities: Entities) -> List[AgentType]:
    """
    Agent types implied by entity content, in a fixed order, without duplicates.

    platform -> procurement; item/quantity/unit -> inventory;
    time_period -> finance; action verbs via the action table.
    """
    implied: List[AgentType] = []

    def add(agent: AgentType) -> None:
        if agent not in implied:
            implied.append(agent)

    if entities.platform or entities.platforms:
        add(AgentType.PROCUREMENT)
    if entities.item_name or entities.items or entities.quantity is not None \
            or entities.quantities or entities.unit:
        add(AgentType.INVENTORY)
    if entities.time_period:
        add(AgentType.FINANCE)

    action_agents = get_action_agents()
    for action in entities.actions or ([entities.action] if entities.action else []):
        agent_value = action_agents.get(action.lower())
        if agent_value:
            add(AgentType(agent_value))

    return implied


def get_suggested_actions(agent: AgentType, language: Optional[str] = None) -> List[str]:
    table = SUGGESTED_ACTIONS.get(language or "zh-CN", SUGGESTED_ACTIONS["zh-CN"])
    return list(table.get(agent, []))
