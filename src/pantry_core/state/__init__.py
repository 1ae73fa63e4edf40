"""
State package.

Conversation, workflow and cache persistence behind the StateStore interface,
plus the key-value tables the manager and router keep per-conversation data in.
"""

import logging
from typing import Optional

from ..config import CoreConfig
from .memory_store import InMemoryStateStore
from .redis_store import RedisStateStore
from .store import StateStore

logger = logging.getLogger(__name__)


def create_state_store(config: Optional[CoreConfig] = None) -> StateStore:
    """
    Build the state store for the current configuration.

    Uses Redis when REDIS_URL is set, otherwise the in-memory store.

    Args:
        config: Core settings (read from the environment when omitted)

    Returns:
        StateStore instance
    """
    config = config or CoreConfig()
    settings = dict(
        key_prefix=config.STATE_KEY_PREFIX,
        default_cache_ttl=config.CACHE_TTL_SECONDS,
        conversation_ttl=config.CONVERSATION_TTL_SECONDS,
        workflow_ttl=config.WORKFLOW_STATE_TTL_SECONDS,
    )
    if config.REDIS_URL:
        logger.info("Using Redis state store", extra={'backend': 'redis'})
        return RedisStateStore(redis_url=config.REDIS_URL, **settings)

    logger.info("REDIS_URL not set, using in-memory state store", extra={'backend': 'memory'})
    return InMemoryStateStore(**settings)


__all__ = ["StateStore", "InMemoryStateStore", "RedisStateStore", "create_state_store"]
