"""
Key-Value Tables

Injected per-conversation storage for the conversation manager (pending
clarification requests, live contexts) and the agent router (routing memory).

Two implementations:
- InMemoryTable: process-local dict, values kept as live objects
- StoreBackedTable: values serialized into a StateStore cache namespace, so
  they survive restarts and can be shared when the store is Redis
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, List, Optional, Set, TypeVar

from .store import StateStore

V = TypeVar("V")


class KeyValueTable(ABC, Generic[V]):
    """Async key-value table interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[V]:
        """Value for key, or None."""

    @abstractmethod
    async def set(self, key: str, value: V) -> None:
        """Insert or replace a value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    @abstractmethod
    async def keys(self) -> List[str]:
        """Keys currently known to the table."""

    async def contains(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        for key in await self.keys():
            await self.delete(key)


class InMemoryTable(KeyValueTable[V]):
    """Dictionary-backed table."""

    def __init__(self):
        self._data: Dict[str, V] = {}

    async def get(self, key: str) -> Optional[V]:
        return self._data.get(key)

    async def set(self, key: str, value: V) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> List[str]:
        return list(self._data.keys())

    async def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class StoreBackedTable(KeyValueTable[V]):
    """
    Table persisted through a StateStore cache namespace.

    Values are written with ``encode`` (e.g. ``to_dict``) and read back with
    ``decode`` (e.g. ``from_dict``). ``keys()`` only reports keys written by
    this process.
    """

    def __init__(
        self,
        store: StateStore,
        namespace: str,
        encode: Callable[[V], Any] = lambda value: value,
        decode: Callable[[Any], V] = lambda raw: raw,
        ttl: int = 0,
    ):
        self.store = store
        self.namespace = namespace
        self.encode = encode
        self.decode = decode
        self.ttl = ttl
        self._known: Set[str] = set()

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[V]:
        raw = await self.store.get_cached(self._key(key))
        if raw is None:
            return None
        return self.decode(raw)

    async def set(self, key: str, value: V) -> None:
        await self.store.cache(self._key(key), self.encode(value), ttl=self.ttl)
        self._known.add(key)

    async def delete(self, key: str) -> None:
        await self.store.invalidate(self._key(key))
        self._known.discard(key)

    async def keys(self) -> List[str]:
        return sorted(self._known)

    async def clear(self) -> None:
        await self.store.invalidate(f"{self.namespace}:*")
        self._known.clear()
