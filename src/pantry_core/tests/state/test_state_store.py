"""
Unit tests for the state stores.

Tests save/load round trips, TTL expiry, cache invalidation and Redis
failure handling (with a mocked redis.asyncio client).
"""
import json
import logging
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pantry_core.config import CoreConfig
from pantry_core.state import InMemoryStateStore, RedisStateStore, create_state_store
from pantry_core.state.models import (
    ConversationContext,
    ConversationTurn,
    ErrorInfo,
    StepStatus,
    WorkflowState,
    WorkflowStatus,
    WorkflowStepExecution,
    utcnow,
)
from pantry_nlu.data_types import Entities


def make_context(conversation_id="conv-1"):
    context = ConversationContext(
        conversation_id=conversation_id,
        user_id="user-1",
        current_intent="inventory_management",
        entities=Entities(item_name="抽纸", quantity=1, unit="包"),
        preferred_language="zh-CN",
    )
    context.append_turn(ConversationTurn(
        turn_id="t1",
        user_input="抽纸消耗1包",
        intent="inventory_management",
        agent_id="inventory",
        entities=Entities(item_name="抽纸", quantity=1),
    ), max_history=20)
    context.contextual_info["last_intent"] = "inventory_management"
    return context


def make_workflow_state(execution_id="exec-1"):
    state = WorkflowState(workflow_id="restock", execution_id=execution_id,
                          global_context={"input": {"item": "抽纸"}})
    state.step_history.append(WorkflowStepExecution(
        step_id="check", execution_id=execution_id, status=StepStatus.COMPLETED,
        input={"item": "抽纸"}, output={"remaining": 2},
    ))
    state.step_history.append(WorkflowStepExecution(
        step_id="order", execution_id=execution_id, status=StepStatus.FAILED,
        error=ErrorInfo(code="AGENT_NOT_FOUND", message="Agent not found: procurement"),
    ))
    state.status = WorkflowStatus.FAILED
    return state


class TestInMemoryStateStore:
    """Tests for the in-memory backend."""

    @pytest.mark.asyncio
    async def test_conversation_round_trip(self):
        store = InMemoryStateStore()
        context = make_context()

        await store.save_conversation_state("conv-1", context)
        loaded = await store.load_conversation_state("conv-1")

        assert loaded == context
        assert loaded is not context

    @pytest.mark.asyncio
    async def test_missing_conversation_returns_none(self):
        store = InMemoryStateStore()

        assert await store.load_conversation_state("missing") is None

    @pytest.mark.asyncio
    async def test_delete_conversation(self):
        store = InMemoryStateStore()
        await store.save_conversation_state("conv-1", make_context())

        await store.delete_conversation_state("conv-1")

        assert await store.load_conversation_state("conv-1") is None

    @pytest.mark.asyncio
    async def test_workflow_round_trip(self):
        store = InMemoryStateStore()
        state = make_workflow_state()

        await store.save_workflow_state("restock", "exec-1", state)
        loaded = await store.load_workflow_state("restock", "exec-1")

        assert loaded == state
        assert loaded.step_history[1].error.code == "AGENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_workflow_states_filters_by_workflow(self):
        store = InMemoryStateStore()
        await store.save_workflow_state("restock", "exec-1", make_workflow_state("exec-1"))
        await store.save_workflow_state("restock", "exec-2", make_workflow_state("exec-2"))
        other = WorkflowState(workflow_id="report", execution_id="exec-3")
        await store.save_workflow_state("report", "exec-3", other)

        states = await store.list_workflow_states("restock")

        assert {s.execution_id for s in states} == {"exec-1", "exec-2"}

    @pytest.mark.asyncio
    async def test_cache_get_and_invalidate(self):
        store = InMemoryStateStore()

        await store.cache("routing:conv-1", {"agent": "inventory"})
        assert await store.get_cached("routing:conv-1") == {"agent": "inventory"}

        await store.invalidate("routing:conv-1")
        assert await store.get_cached("routing:conv-1") is None

    @pytest.mark.asyncio
    async def test_invalidate_prefix(self):
        store = InMemoryStateStore()
        await store.cache("routing:conv-1", 1)
        await store.cache("routing:conv-2", 2)
        await store.cache("clarification:conv-1", 3)

        await store.invalidate("routing:*")

        assert await store.get_cached("routing:conv-1") is None
        assert await store.get_cached("routing:conv-2") is None
        assert await store.get_cached("clarification:conv-1") == 3

    @pytest.mark.asyncio
    async def test_expired_cache_entry_is_a_miss(self):
        store = InMemoryStateStore()

        await store.cache("k", "v", ttl=10)
        later = utcnow() + timedelta(seconds=11)

        with patch("pantry_core.state.models.utcnow", return_value=later):
            assert await store.get_cached("k") is None

    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(self):
        store = InMemoryStateStore()

        await store.cache("k", "v", ttl=0)

        assert await store.get_cached("k") == "v"


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.set = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


class TestRedisStateStore:
    """Tests for the Redis backend against a mocked client."""

    @pytest.mark.asyncio
    async def test_save_conversation_writes_json_with_ttl(self, redis_client):
        store = RedisStateStore(client=redis_client, conversation_ttl=3600)

        await store.save_conversation_state("conv-1", make_context())

        redis_client.set.assert_awaited_once()
        key, value = redis_client.set.call_args[0]
        assert key == "pantry:conversation:conv-1"
        assert redis_client.set.call_args[1] == {"ex": 3600}
        assert json.loads(value)["current_intent"] == "inventory_management"

    @pytest.mark.asyncio
    async def test_conversation_round_trip(self, redis_client):
        store = RedisStateStore(client=redis_client)
        context = make_context()

        await store.save_conversation_state("conv-1", context)
        redis_client.get.return_value = redis_client.set.call_args[0][1]
        loaded = await store.load_conversation_state("conv-1")

        redis_client.get.assert_awaited_once_with("pantry:conversation:conv-1")
        assert loaded == context

    @pytest.mark.asyncio
    async def test_write_failure_is_logged_not_raised(self, redis_client, caplog):
        redis_client.set.side_effect = ConnectionError("Redis down")
        store = RedisStateStore(client=redis_client)

        with caplog.at_level(logging.ERROR, logger="pantry_core.state.redis_store"):
            await store.save_workflow_state("restock", "exec-1", make_workflow_state())

        record = caplog.records[-1]
        assert record.error_code == "STATE_STORE_ERROR"
        assert record.storage_key == "pantry:workflow:restock:exec-1"
        assert record.error_type == "ConnectionError"

    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self, redis_client):
        redis_client.get.side_effect = ConnectionError("Redis down")
        store = RedisStateStore(client=redis_client)

        assert await store.load_conversation_state("conv-1") is None
        assert await store.get_cached("anything") is None

    @pytest.mark.asyncio
    async def test_corrupt_record_is_a_miss(self, redis_client):
        redis_client.get.return_value = json.dumps({"unexpected": True})
        store = RedisStateStore(client=redis_client)

        assert await store.load_conversation_state("conv-1") is None

    @pytest.mark.asyncio
    async def test_cache_uses_default_ttl(self, redis_client):
        store = RedisStateStore(client=redis_client, default_cache_ttl=60)

        await store.cache("k", {"a": 1})

        key, value = redis_client.set.call_args[0]
        assert key == "pantry:cache:k"
        assert redis_client.set.call_args[1] == {"ex": 60}
        assert json.loads(value)["value"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_ping_reports_unavailable(self, redis_client):
        redis_client.ping.side_effect = ConnectionError("Redis down")
        store = RedisStateStore(client=redis_client)

        assert await store.ping() is False

    def test_requires_url_or_client(self):
        with pytest.raises(ValueError):
            RedisStateStore()


class TestCreateStateStore:
    """Tests for backend selection."""

    def test_memory_when_redis_url_unset(self):
        store = create_state_store(CoreConfig(REDIS_URL=None))

        assert isinstance(store, InMemoryStateStore)

    def test_redis_when_redis_url_set(self):
        store = create_state_store(CoreConfig(REDIS_URL="redis://localhost:6379/0", STATE_KEY_PREFIX="test"))

        assert isinstance(store, RedisStateStore)
        assert store.key_prefix == "test"
