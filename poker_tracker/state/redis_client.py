"""Async Redis client wrapper."""
from __future__ import annotations
from typing import Optional
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from poker_tracker.config import config
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Async Redis client wrapper."""
    
    _instance: Optional["RedisClient"] = None
    _redis: Optional[Redis] = None
    
    def __new__(cls) -> "RedisClient":
        """Singleton pattern for Redis client."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is None:
            self._redis = from_url(
                config.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            logger.info(f"Connected to Redis at {config.redis_url}")
    
    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Disconnected from Redis")
    
    @property
    def redis(self) -> Redis:
        """Get Redis connection, raise if not connected."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis
    
    async def get(self, key: str) -> Optional[str]:
        """Get a string value."""
        return await self.redis.get(key)
    
    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        """Set a string value with optional expiry in seconds."""
        await self.redis.set(key, value, ex=ex)
    
    async def delete(self, key: str) -> None:
        """Delete a key."""
        await self.redis.delete(key)
    
    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        return await self.redis.exists(key) > 0
    
    async def ping(self) -> bool:
        """Return True when Redis answers."""
        try:
            return bool(await self.redis.ping())
        except (RedisError, RuntimeError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False


# Global instance
redis_client = RedisClient()
