"""
State Store Abstraction

Provides a clean interface for persisting and retrieving conversation
context, workflow execution state and cached values. All persistence in the
orchestration core goes through this abstraction.

Every operation is fallible underneath; implementations log failures and
degrade to "not found" / no-op instead of raising to the caller.
"""
import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from .models import CacheEntry, ConversationContext, WorkflowState, utcnow


class StateStore(ABC):
    """
    Abstract base class for state storage.

    Key format:
        {prefix}:conversation:{conversation_id}
        {prefix}:workflow:{workflow_id}:{execution_id}
        {prefix}:cache:{key}
    Value: JSON-serialized ``to_dict()`` of the stored model
    """

    def __init__(
        self,
        key_prefix: str = "pantry",
        default_cache_ttl: int = 3600,
        conversation_ttl: Optional[int] = None,
        workflow_ttl: Optional[int] = None,
    ):
        self.key_prefix = key_prefix
        self.default_cache_ttl = default_cache_ttl
        self.conversation_ttl = conversation_ttl
        self.workflow_ttl = workflow_ttl

    # ------------------------------------------------------------------
    # Keys and serialization
    # ------------------------------------------------------------------

    def _conversation_key(self, conversation_id: str) -> str:
        return f"{self.key_prefix}:conversation:{conversation_id}"

    def _workflow_key(self, workflow_id: str, execution_id: str) -> str:
        return f"{self.key_prefix}:workflow:{workflow_id}:{execution_id}"

    def _workflow_pattern(self, workflow_id: str) -> str:
        return f"{self.key_prefix}:workflow:{workflow_id}:*"

    def _cache_key(self, key: str) -> str:
        return f"{self.key_prefix}:cache:{key}"

    def _sanitize_for_storage(self, obj: Any) -> Any:
        """
        Recursively sanitize objects for JSON storage.

        Keeps primitives and collections, converts datetimes to ISO strings
        and enums to their values; anything else becomes its string form.
        """
        if obj is None or isinstance(obj, (str, int, float, bool)):
            return obj
        if isinstance(obj, datetime):
            return obj.isoformat(timespec="microseconds")
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, dict):
            return {str(k): self._sanitize_for_storage(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple, set)):
            return [self._sanitize_for_storage(item) for item in obj]
        if hasattr(obj, "to_dict"):
            return self._sanitize_for_storage(obj.to_dict())
        return str(obj)

    def _dump(self, payload: Dict[str, Any]) -> str:
        return json.dumps(self._sanitize_for_storage(payload), ensure_ascii=False)

    @staticmethod
    def _load(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def _new_cache_entry(
        self,
        key: str,
        value: Any,
        ttl: Optional[int],
        metadata: Optional[Dict[str, Any]],
    ) -> CacheEntry:
        ttl = self.default_cache_ttl if ttl is None else ttl
        now = utcnow()
        return CacheEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl) if ttl and ttl > 0 else None,
            metadata=dict(metadata or {}),
        )

    # ------------------------------------------------------------------
    # Conversation state
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_conversation_state(self, conversation_id: str, context: ConversationContext) -> None:
        """
        Store conversation context.

        Args:
            conversation_id: Conversation identifier
            context: Context to persist
        """

    @abstractmethod
    async def load_conversation_state(self, conversation_id: str) -> Optional[ConversationContext]:
        """
        Retrieve conversation context.

        Returns:
            Stored context or None if not found (or on storage failure)
        """

    @abstractmethod
    async def delete_conversation_state(self, conversation_id: str) -> None:
        """Delete a persisted conversation context."""

    # ------------------------------------------------------------------
    # Workflow state
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_workflow_state(self, workflow_id: str, execution_id: str, state: WorkflowState) -> None:
        """Store workflow execution state."""

    @abstractmethod
    async def load_workflow_state(self, workflow_id: str, execution_id: str) -> Optional[WorkflowState]:
        """
        Retrieve workflow execution state.

        Returns:
            Stored state or None if not found (or on storage failure)
        """

    @abstractmethod
    async def list_workflow_states(self, workflow_id: str) -> List[WorkflowState]:
        """All stored executions of a workflow, oldest first."""

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    @abstractmethod
    async def cache(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Cache a JSON-compatible value.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time-to-live in seconds (None = default, 0 = no expiry)
            metadata: Optional metadata stored with the entry
        """

    @abstractmethod
    async def get_cached(self, key: str) -> Any:
        """
        Retrieve a cached value.

        Returns:
            Cached value, or None when missing or expired
        """

    @abstractmethod
    async def invalidate(self, key: str) -> None:
        """
        Remove cached values.

        Args:
            key: Exact cache key, or ``prefix*`` to remove every key with that prefix
        """

    async def close(self) -> None:
        """Release backend resources."""
        return None
