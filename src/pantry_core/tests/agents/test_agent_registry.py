"""
Unit tests for the worker agent registry.
"""
import pytest

from pantry_core.agents import AgentRegistry, WorkerAgent
from pantry_core.errors import AgentNotFound


class StubAgent:
    def __init__(self, agent_id, agent_type="inventory"):
        self.agent_id = agent_id
        self.agent_type = agent_type

    async def process_task(self, task):
        return {"ok": True}

    async def handle_message(self, message):
        return None

    def get_capabilities(self):
        return []

    def get_metrics(self):
        return {}


def test_stub_satisfies_protocol():
    assert isinstance(StubAgent("inv-1"), WorkerAgent)


def test_register_and_lookup_by_id():
    registry = AgentRegistry()
    agent = StubAgent("inv-1")

    registry.register(agent)

    assert registry.get("inv-1") is agent
    assert registry.has_agent("inv-1")
    assert len(registry) == 1


def test_lookup_by_agent_type():
    registry = AgentRegistry()
    agent = StubAgent("fin-1", agent_type="finance")
    registry.register(agent)

    assert registry.get("finance") is agent
    assert registry.available_types() == ["finance"]


def test_register_overwrites_same_id():
    registry = AgentRegistry()
    registry.register(StubAgent("inv-1"))
    replacement = StubAgent("inv-1")

    registry.register(replacement)

    assert registry.get("inv-1") is replacement
    assert registry.agent_ids() == ["inv-1"]


def test_register_requires_agent_id():
    with pytest.raises(ValueError):
        AgentRegistry().register(StubAgent(""))


def test_require_missing_agent():
    with pytest.raises(AgentNotFound) as exc_info:
        AgentRegistry().require("procurement")

    assert exc_info.value.code == "AGENT_NOT_FOUND"
    assert exc_info.value.details == {"agent_id": "procurement"}


def test_unregister_and_clear():
    registry = AgentRegistry()
    registry.register(StubAgent("inv-1"))
    registry.register(StubAgent("inv-2"))

    registry.unregister("inv-1")
    registry.unregister("missing")
    assert registry.agent_ids() == ["inv-2"]

    registry.clear()
    assert len(registry) == 0
