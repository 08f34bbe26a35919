"""
Redis cache used for per-session reminder read/dismiss state
"""
import json
import logging
from typing import Optional, Any, List, Set

import redis.asyncio as redis
from redis.exceptions import RedisError

from config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """Redis cache manager for async operations"""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url
        self.redis_client: Optional[redis.Redis] = None
        self.enabled = False

    async def connect(self):
        """Connect to Redis"""
        redis_url = self.redis_url or settings.REDIS_URL
        if not redis_url:
            logger.info("Redis URL not configured. Caching disabled.")
            self.enabled = False
            return

        try:
            self.redis_client = redis.from_url(
                redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            await self.redis_client.ping()
            self.enabled = True
        except RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Continuing without cache.")
            self.enabled = False

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
        self.enabled = False

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        if not self.enabled or not self.redis_client:
            return None

        try:
            value = await self.redis_client.get(key)
            if value:
                return json.loads(value)
            return None
        except RedisError as e:
            logger.warning(f"Cache get error: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600):
        """Set value in cache with TTL (default 1 hour)"""
        if not self.enabled or not self.redis_client:
            return False

        try:
            await self.redis_client.setex(key, ttl, json.dumps(value))
            return True
        except RedisError as e:
            logger.warning(f"Cache set error: {e}")
            return False


# Global cache manager instance
cache_manager = CacheManager()


class ReminderStateStore:
    """
    Read/dismissed reminder ids for one UI session.

    Only active when REMINDER_PERSIST_READ_STATE is set and Redis is
    reachable; otherwise every lookup is empty and reminders come back unread.
    """

    def __init__(self, cache: CacheManager, ttl: Optional[int] = None):
        self.cache = cache
        self.ttl = ttl or settings.REMINDER_STATE_TTL_SECONDS

    @property
    def enabled(self) -> bool:
        return settings.REMINDER_PERSIST_READ_STATE and self.cache.enabled

    @staticmethod
    def _key(session_id: str, kind: str) -> str:
        return f"reminders:{session_id}:{kind}"

    async def _load(self, session_id: str, kind: str) -> Set[str]:
        if not self.enabled or not session_id:
            return set()
        return set(await self.cache.get(self._key(session_id, kind)) or [])

    async def _add(self, session_id: str, kind: str, reminder_id: str) -> bool:
        if not self.enabled or not session_id:
            return False
        ids = await self._load(session_id, kind)
        ids.add(reminder_id)
        return await self.cache.set(self._key(session_id, kind), sorted(ids), self.ttl)

    async def read_ids(self, session_id: str) -> Set[str]:
        return await self._load(session_id, "read")

    async def dismissed_ids(self, session_id: str) -> Set[str]:
        return await self._load(session_id, "dismissed")

    async def mark_read(self, session_id: str, reminder_id: str) -> bool:
        return await self._add(session_id, "read", reminder_id)

    async def dismiss(self, session_id: str, reminder_id: str) -> bool:
        return await self._add(session_id, "dismissed", reminder_id)

    async def mark_all_read(self, session_id: str, reminder_ids: List[str]) -> bool:
        if not self.enabled or not session_id:
            return False
        ids = await self._load(session_id, "read")
        ids.update(reminder_ids)
        return await self.cache.set(self._key(session_id, "read"), sorted(ids), self.ttl)


reminder_state_store = ReminderStateStore(cache_manager)
