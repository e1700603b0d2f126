# rescue_timeline/services/infrastructure/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from rescue_timeline.config import settings
from rescue_timeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RedisUnavailableError(Exception):
    """Raised by operations whose callers must not proceed on a Redis failure."""


class FastRedisClient:
    """Pooled async Redis client for device state, scheduled notifications and toasts"""

    def __init__(self, redis_url: str | None = None):
        self._redis_url = redis_url
        self.pool = None
        self.client = None
        self._initialized = False

    def is_configured(self) -> bool:
        return bool(self._redis_url or settings.redis_url())

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        redis_url = self._redis_url or settings.redis_url()
        if not redis_url:
            raise RuntimeError("Redis is not configured")

        try:
            logger.info("Attempting Redis connection", url_preview=redis_url.split("@")[-1])

            self.pool = ConnectionPool.from_url(
                redis_url,
                max_connections=20,
                retry_on_timeout=True,
                retry_on_error=[redis.ConnectionError, redis.TimeoutError],
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Fast Redis client initialized successfully", max_connections=20)

        except Exception as e:
            logger.error("Failed to initialize fast Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Fast Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    async def ping(self) -> bool:
        """Test Redis connection"""
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    # Hash and set operations raise: a device's notification state must not be
    # silently treated as empty.

    async def hset(self, key: str, field: str, value: str) -> None:
        try:
            await self._ensure_initialized()
            await self.client.hset(key, field, value)
        except Exception as e:
            logger.error("Redis HSET failed", key=key[:40], error=str(e))
            raise RedisUnavailableError(f"Redis HSET failed: {e}") from e

    async def hgetall(self, key: str) -> dict[str, str]:
        try:
            await self._ensure_initialized()
            return await self.client.hgetall(key)
        except Exception as e:
            logger.error("Redis HGETALL failed", key=key[:40], error=str(e))
            raise RedisUnavailableError(f"Redis HGETALL failed: {e}") from e

    async def hdel(self, key: str, field: str) -> bool:
        try:
            await self._ensure_initialized()
            return await self.client.hdel(key, field) > 0
        except Exception as e:
            logger.error("Redis HDEL failed", key=key[:40], error=str(e))
            raise RedisUnavailableError(f"Redis HDEL failed: {e}") from e

    async def sadd(self, key: str, member: str) -> None:
        try:
            await self._ensure_initialized()
            await self.client.sadd(key, member)
        except Exception as e:
            logger.error("Redis SADD failed", key=key[:40], error=str(e))
            raise RedisUnavailableError(f"Redis SADD failed: {e}") from e

    async def smembers(self, key: str) -> set[str]:
        try:
            await self._ensure_initialized()
            return set(await self.client.smembers(key))
        except Exception as e:
            logger.error("Redis SMEMBERS failed", key=key[:40], error=str(e))
            raise RedisUnavailableError(f"Redis SMEMBERS failed: {e}") from e

    async def publish(self, channel: str, message: str) -> int:
        """Publish a message - with fallback handling"""
        try:
            await self._ensure_initialized()
            return int(await self.client.publish(channel, message))
        except Exception as e:
            logger.error("Redis PUBLISH failed", channel=channel[:40], error=str(e))
            return 0


# Global instance
fast_redis = FastRedisClient()
