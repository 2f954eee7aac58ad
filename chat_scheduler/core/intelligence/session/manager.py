"""Redis-based conversation state storage."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from chat_scheduler.config import settings
from chat_scheduler.infra.redis import get_redis, APP_PREFIX
from .models import ConversationState, InvalidStateError, state_from_json

logger = logging.getLogger(__name__)

# Conversation key prefix (extends existing APP_PREFIX)
STATE_PREFIX = f"{APP_PREFIX}conversation:"


class ConversationStateStore(ABC):
    """Keyed storage for conversation state with a time-to-live."""

    @abstractmethod
    async def get(self, key: str) -> Optional[ConversationState]:
        """Return the live state for a key, or None if absent or expired."""

    @abstractmethod
    async def set(
        self,
        key: str,
        state: ConversationState,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Store a state, restarting its time-to-live."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Clear a conversation. Returns True if something was removed."""


class RedisConversationStateStore(ConversationStateStore):
    """
    Conversation state in Redis.

    Key pattern: scheduler:v1:conversation:{conversation_key}

    Every write restarts the TTL, so a conversation expires after
    ``conversation_ttl`` seconds of inactivity. Reads also honour the
    ``expires_at`` stamped into the state. Falls back to an in-memory dict
    when Redis is unavailable.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self._ttl = ttl_seconds or settings.conversation_ttl
        self._in_memory_fallback: dict[str, ConversationState] = {}

    def _key(self, key: str) -> str:
        """Generate Redis key."""
        return f"{STATE_PREFIX}{key}"

    async def get(self, key: str) -> Optional[ConversationState]:
        redis = await get_redis()

        if redis:
            data = await redis.get(self._key(key))
            if not data:
                return None

            try:
                state = state_from_json(data)
            except (InvalidStateError, KeyError, ValueError) as e:
                logger.warning(f"Discarding unreadable conversation state for {key}: {e}")
                await redis.delete(self._key(key))
                return None
        else:
            state = self._in_memory_fallback.get(key)
            if state is None:
                return None

        if state.is_expired():
            logger.debug(f"Conversation state expired: {key}")
            await self.delete(key)
            return None

        return state

    async def set(
        self,
        key: str,
        state: ConversationState,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        ttl = ttl_seconds or self._ttl
        state.touch(ttl)

        redis = await get_redis()

        if redis:
            await redis.setex(self._key(key), ttl, state.to_json())
            logger.debug(f"Conversation state saved: {key} ({state.step.value})")
        else:
            self._in_memory_fallback[key] = state
            logger.warning(
                f"Redis unavailable, using in-memory fallback for conversation {key}"
            )

    async def delete(self, key: str) -> bool:
        redis = await get_redis()

        if redis:
            deleted = await redis.delete(self._key(key))
            if deleted:
                logger.debug(f"Conversation state cleared: {key}")
            return bool(deleted)

        if key in self._in_memory_fallback:
            del self._in_memory_fallback[key]
            return True
        return False


# Singleton
_store: Optional[RedisConversationStateStore] = None


async def get_conversation_store() -> RedisConversationStateStore:
    """Get singleton RedisConversationStateStore."""
    global _store
    if _store is None:
        _store = RedisConversationStateStore()
    return _store
