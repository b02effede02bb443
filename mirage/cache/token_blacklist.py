import logging
from datetime import datetime, timezone

from redis.exceptions import RedisError

from mirage.cache.base import BaseCache
from mirage.cache.keys import CacheKeys

logger = logging.getLogger(__name__)


class TokenBlacklist(BaseCache):
    """
    Revoked JWT ids, each kept only until the token would have expired.
    """

    async def revoke(self, jti: str, expires_at: datetime) -> None:
        ttl = int((expires_at - datetime.now(timezone.utc)).total_seconds())
        if ttl <= 0:
            return
        await self.set(CacheKeys.revoked_token(jti), "1", ttl)

    async def is_revoked(self, jti: str) -> bool:
        try:
            return await self.exists(CacheKeys.revoked_token(jti))
        except RedisError as exc:
            # Fails open: an unreachable Redis reports nothing as revoked.
            logger.warning(f"Token blacklist lookup failed: {exc}")
            return False
