from typing import Optional

import redis.asyncio as redis

from mirage.cache.redis import RedisClient


class BaseCache:
    """
    Base cache abstraction.

    All cache implementations should extend this class.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client or RedisClient.get_client()

    # ─────────────────────────────────────────────
    # Core operations
    # ─────────────────────────────────────────────

    async def set(
        self,
        key: str,
        value: str,
        ttl: int,
    ) -> None:
        """
        Set value in cache with TTL (seconds).
        """
        await self.client.setex(key, ttl, value)

    async def exists(self, key: str) -> bool:
        """
        Check if a key exists.
        """
        return bool(await self.client.exists(key))
