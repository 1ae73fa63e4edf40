"""
Redis State Store Implementation

Concrete implementation of StateStore using redis.asyncio.

Redis failures never reach the caller: reads log and return None, writes log
loudly and continue. The orchestration keeps working on in-process state.
"""
import logging
from typing import Any, Dict, List, Optional

import redis.asyncio as redis

from ..errors.exceptions import StateStoreError
from .models import CacheEntry, ConversationContext, WorkflowState
from .store import StateStore

logger = logging.getLogger(__name__)


class RedisStateStore(StateStore):
    """
    Redis-backed state store.

    Key format: see StateStore
    Value: JSON-serialized model
    TTL: per record type (conversation / workflow / cache)
    """

    def __init__(self, redis_url: Optional[str] = None, client=None, **kwargs):
        """
        Initialize Redis state store.

        Args:
            redis_url: Redis connection URL (used when no client is given)
            client: Optional redis.asyncio client instance
            **kwargs: StateStore settings (key_prefix, TTLs)
        """
        super().__init__(**kwargs)
        if client is None:
            if not redis_url:
                raise ValueError("RedisStateStore needs a redis_url or a client")
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        self._client = client

    async def ping(self) -> bool:
        """Check connectivity; False when Redis is unreachable."""
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.warning(f"Redis not available: {e}")
            return False

    def _failure(self, action: str, key: str, error: Exception) -> StateStoreError:
        return StateStoreError(
            f"Failed to {action} at {key}: {error}",
            {'storage_key': key, 'error_type': type(error).__name__},
        )

    async def _set(self, key: str, payload: Dict[str, Any], ttl: Optional[int], what: str) -> None:
        try:
            value = self._dump(payload)
            if ttl and ttl > 0:
                await self._client.set(key, value, ex=ttl)
            else:
                await self._client.set(key, value)
        except Exception as e:
            # Persistence failures are logged loudly but never re-raised
            failure = self._failure(f"persist {what}", key, e)
            logger.error(
                f"CRITICAL: {failure.message}",
                extra={'error_code': failure.code, **failure.details},
                exc_info=True
            )

    async def _get(self, key: str, what: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self._client.get(key)
            if raw is None:
                return None
            return self._load(raw)
        except Exception as e:
            failure = self._failure(f"load {what}", key, e)
            logger.warning(failure.message, extra={'error_code': failure.code, **failure.details})
            return None

    async def _delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._client.delete(*keys)
        except Exception as e:
            logger.warning(f"Failed to delete {len(keys)} key(s): {e}",
                           extra={'error_type': type(e).__name__})

    async def _scan(self, pattern: str) -> List[str]:
        try:
            return [key async for key in self._client.scan_iter(match=pattern)]
        except Exception as e:
            logger.warning(f"Failed to scan {pattern}: {e}",
                           extra={'error_type': type(e).__name__})
            return []

    async def save_conversation_state(self, conversation_id: str, context: ConversationContext) -> None:
        await self._set(self._conversation_key(conversation_id), context.to_dict(),
                        self.conversation_ttl, "conversation")

    async def load_conversation_state(self, conversation_id: str) -> Optional[ConversationContext]:
        data = await self._get(self._conversation_key(conversation_id), "conversation")
        if not data:
            return None
        try:
            return ConversationContext.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Corrupt conversation state for {conversation_id}: {e}",
                           extra={'conversation_id': conversation_id})
            return None

    async def delete_conversation_state(self, conversation_id: str) -> None:
        await self._delete(self._conversation_key(conversation_id))

    async def save_workflow_state(self, workflow_id: str, execution_id: str, state: WorkflowState) -> None:
        await self._set(self._workflow_key(workflow_id, execution_id), state.to_dict(),
                        self.workflow_ttl, "workflow state")

    async def load_workflow_state(self, workflow_id: str, execution_id: str) -> Optional[WorkflowState]:
        data = await self._get(self._workflow_key(workflow_id, execution_id), "workflow state")
        if not data:
            return None
        try:
            return WorkflowState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Corrupt workflow state for {workflow_id}/{execution_id}: {e}",
                           extra={'workflow_id': workflow_id, 'execution_id': execution_id})
            return None

    async def list_workflow_states(self, workflow_id: str) -> List[WorkflowState]:
        states = []
        for key in await self._scan(self._workflow_pattern(workflow_id)):
            data = await self._get(key, "workflow state")
            if data:
                states.append(WorkflowState.from_dict(data))
        return sorted(states, key=lambda s: s.started_at)

    async def cache(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry = self._new_cache_entry(key, value, ttl, metadata)
        effective_ttl = self.default_cache_ttl if ttl is None else ttl
        await self._set(self._cache_key(key), entry.to_dict(), effective_ttl, "cache entry")

    async def get_cached(self, key: str) -> Any:
        storage_key = self._cache_key(key)
        data = await self._get(storage_key, "cache entry")
        if data is None:
            return None
        entry = CacheEntry.from_dict(data)
        if entry.is_expired():
            await self._delete(storage_key)
            return None
        return entry.value

    async def invalidate(self, key: str) -> None:
        if key.endswith("*"):
            keys = await self._scan(self._cache_key(key[:-1]) + "*")
            await self._delete(*keys)
            return
        await self._delete(self._cache_key(key))

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except Exception as e:
            logger.warning(f"Failed to close Redis client: {e}")
