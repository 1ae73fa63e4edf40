"""
Worker Agent Interface and Registry

Worker agents (inventory, procurement, finance, notification) live outside
the orchestration core. The core only dispatches tasks to them and looks
them up by id; everything else about an agent is opaque.

This is a Protocol (structural typing) - any class implementing the
required attributes and methods is a valid WorkerAgent.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
import logging

from ..errors.exceptions import AgentNotFound
from ..state.models import new_id, utcnow

logger = logging.getLogger(__name__)


class AgentType(Enum):
    """Fixed set of worker agent types."""
    INVENTORY = "inventory"
    PROCUREMENT = "procurement"
    FINANCE = "finance"
    NOTIFICATION = "notification"


@dataclass
class Task:
    """Unit of work dispatched to a worker agent."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    task_id: str = field(default_factory=new_id)
    priority: int = 0
    workflow_id: Optional[str] = None
    execution_id: Optional[str] = None
    step_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class AgentMessage:
    """Message exchanged with a worker agent outside of task dispatch."""
    from_agent: str
    to_agent: str
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    message_id: str = field(default_factory=new_id)
    correlation_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)


@runtime_checkable
class WorkerAgent(Protocol):
    """
    Worker agent interface consumed by the workflow engine.

    agent_id identifies the agent in the registry; agent_type is one of
    AgentType's values.
    """

    agent_id: str
    agent_type: str

    async def process_task(self, task: Task) -> Any:
        """
        Execute a task.

        Args:
            task: Task to run

        Returns:
            Task output (JSON-compatible); raising marks the attempt failed
        """
        ...

    async def handle_message(self, message: AgentMessage) -> Optional[AgentMessage]:
        """Handle a message; return a reply or None."""
        ...

    def get_capabilities(self) -> List[str]:
        ...

    def get_metrics(self) -> Dict[str, Any]:
        ...


class AgentRegistry:
    """
    Registry for worker agents by agent id.

    This is a simple in-memory registry. Agents are registered during
    application initialization.
    """

    def __init__(self):
        self._agents: Dict[str, WorkerAgent] = {}

    def register(self, agent: WorkerAgent) -> None:
        """
        Register an agent under its agent_id.

        Args:
            agent: Agent implementing the WorkerAgent protocol

        Raises:
            ValueError: If agent.agent_id is empty
        """
        agent_id = getattr(agent, "agent_id", None)
        if not agent_id:
            raise ValueError("Agent must have a non-empty agent_id attribute")

        if agent_id in self._agents:
            logger.warning(
                f"Agent '{agent_id}' is already registered. "
                f"Overwriting with new agent."
            )

        self._agents[agent_id] = agent
        logger.info(f"Registered agent '{agent_id}'",
                    extra={'agent_id': agent_id, 'agent_type': getattr(agent, "agent_type", None)})

    def unregister(self, agent_id: str) -> None:
        self._agents.pop(agent_id, None)

    def get(self, agent_id: str) -> Optional[WorkerAgent]:
        """
        Get an agent by id, or the first agent of that type.

        Args:
            agent_id: Agent id (or an AgentType value)

        Returns:
            Registered agent or None if not found
        """
        agent = self._agents.get(agent_id)
        if agent is not None:
            return agent
        for candidate in self._agents.values():
            if getattr(candidate, "agent_type", None) == agent_id:
                return candidate
        return None

    def require(self, agent_id: str) -> WorkerAgent:
        """
        Get an agent or fail.

        Raises:
            AgentNotFound: If no agent matches
        """
        agent = self.get(agent_id)
        if agent is None:
            raise AgentNotFound(agent_id)
        return agent

    def has_agent(self, agent_id: str) -> bool:
        return self.get(agent_id) is not None

    def agent_ids(self) -> List[str]:
        return list(self._agents.keys())

    def available_types(self) -> List[str]:
        """Agent types with at least one registered agent."""
        return sorted({getattr(a, "agent_type", "") for a in self._agents.values()} - {""})

    def clear(self) -> None:
        self._agents.clear()

    def __len__(self) -> int:
        return len(self._agents)
