"""
In-Memory State Store

Process-local StateStore used when Redis is not configured. Values are kept
as the same JSON strings the Redis store writes, so both backends behave the
same on round trips. TTLs are evaluated lazily on read.
"""
import fnmatch
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from .models import CacheEntry, ConversationContext, WorkflowState
from .store import StateStore

logger = logging.getLogger(__name__)


class InMemoryStateStore(StateStore):
    """Dictionary-backed state store."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # key -> (json payload, monotonic expiry or None)
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _put(self, key: str, payload: Dict[str, Any], ttl: Optional[int]) -> None:
        expires = time.monotonic() + ttl if ttl and ttl > 0 else None
        self._data[key] = (self._dump(payload), expires)

    def _get(self, key: str) -> Optional[Dict[str, Any]]:
        item = self._data.get(key)
        if item is None:
            return None
        raw, expires = item
        if expires is not None and time.monotonic() >= expires:
            del self._data[key]
            return None
        return self._load(raw)

    async def save_conversation_state(self, conversation_id: str, context: ConversationContext) -> None:
        try:
            self._put(self._conversation_key(conversation_id), context.to_dict(), self.conversation_ttl)
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to persist conversation {conversation_id}: {e}",
                extra={'conversation_id': conversation_id, 'error_type': type(e).__name__},
                exc_info=True
            )

    async def load_conversation_state(self, conversation_id: str) -> Optional[ConversationContext]:
        try:
            data = self._get(self._conversation_key(conversation_id))
            return ConversationContext.from_dict(data) if data else None
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Failed to load conversation {conversation_id}: {e}",
                extra={'conversation_id': conversation_id, 'error_type': type(e).__name__}
            )
            return None

    async def delete_conversation_state(self, conversation_id: str) -> None:
        self._data.pop(self._conversation_key(conversation_id), None)

    async def save_workflow_state(self, workflow_id: str, execution_id: str, state: WorkflowState) -> None:
        try:
            self._put(self._workflow_key(workflow_id, execution_id), state.to_dict(), self.workflow_ttl)
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to persist workflow state {workflow_id}/{execution_id}: {e}",
                extra={'workflow_id': workflow_id, 'execution_id': execution_id,
                       'error_type': type(e).__name__},
                exc_info=True
            )

    async def load_workflow_state(self, workflow_id: str, execution_id: str) -> Optional[WorkflowState]:
        try:
            data = self._get(self._workflow_key(workflow_id, execution_id))
            return WorkflowState.from_dict(data) if data else None
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Failed to load workflow state {workflow_id}/{execution_id}: {e}",
                extra={'workflow_id': workflow_id, 'execution_id': execution_id}
            )
            return None

    async def list_workflow_states(self, workflow_id: str) -> List[WorkflowState]:
        pattern = self._workflow_pattern(workflow_id)
        states = []
        for key in [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]:
            data = self._get(key)
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
        try:
            self._put(self._cache_key(key), entry.to_dict(), None)
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to cache {key}: {e}",
                extra={'cache_key': key, 'error_type': type(e).__name__},
                exc_info=True
            )

    async def get_cached(self, key: str) -> Any:
        storage_key = self._cache_key(key)
        data = self._get(storage_key)
        if data is None:
            return None
        entry = CacheEntry.from_dict(data)
        if entry.is_expired():
            self._data.pop(storage_key, None)
            return None
        return entry.value

    async def invalidate(self, key: str) -> None:
        if key.endswith("*"):
            prefix = self._cache_key(key[:-1])
            for storage_key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[storage_key]
            return
        self._data.pop(self._cache_key(key), None)

    async def close(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
