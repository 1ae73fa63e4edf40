from .base import AgentMessage, AgentRegistry, AgentType, Task, WorkerAgent

__all__ = ["AgentMessage", "AgentRegistry", "AgentType", "Task", "WorkerAgent"]
