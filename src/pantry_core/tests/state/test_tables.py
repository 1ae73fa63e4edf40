"""
Unit tests for the per-conversation key-value tables.
"""
import pytest

from pantry_core.state import InMemoryStateStore
from pantry_core.state.models import ClarificationRequest
from pantry_core.state.tables import InMemoryTable, StoreBackedTable
from pantry_nlu.data_types import GuidanceType


def make_request(attempts=1):
    return ClarificationRequest(
        question="请问您要添加什么物品？",
        guidance_type=GuidanceType.INCOMPLETE_COMMAND,
        original_input="添加",
        attempts=attempts,
    )


class TestInMemoryTable:

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        table = InMemoryTable()
        request = make_request()

        await table.set("conv-1", request)
        assert await table.get("conv-1") is request
        assert await table.contains("conv-1") is True

        await table.delete("conv-1")
        assert await table.get("conv-1") is None
        assert await table.contains("conv-1") is False

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_ignored(self):
        table = InMemoryTable()

        await table.delete("missing")

        assert len(table) == 0

    @pytest.mark.asyncio
    async def test_clear(self):
        table = InMemoryTable()
        await table.set("a", 1)
        await table.set("b", 2)

        await table.clear()

        assert await table.keys() == []


class TestStoreBackedTable:

    @pytest.fixture
    def table(self):
        return StoreBackedTable(
            InMemoryStateStore(),
            "clarification",
            encode=lambda request: request.to_dict(),
            decode=ClarificationRequest.from_dict,
        )

    @pytest.mark.asyncio
    async def test_round_trip_through_store(self, table):
        request = make_request(attempts=2)

        await table.set("conv-1", request)
        loaded = await table.get("conv-1")

        assert loaded == request
        assert loaded is not request

    @pytest.mark.asyncio
    async def test_values_live_under_namespace(self, table):
        await table.set("conv-1", make_request())

        assert await table.store.get_cached("clarification:conv-1") is not None

    @pytest.mark.asyncio
    async def test_keys_and_clear(self, table):
        await table.set("conv-1", make_request())
        await table.set("conv-2", make_request())

        assert await table.keys() == ["conv-1", "conv-2"]

        await table.clear()

        assert await table.keys() == []
        assert await table.get("conv-1") is None
