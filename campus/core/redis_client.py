"""
Redis client for cooldown state shared between recognition kiosks
"""
import redis

from campus.core.config import settings


class RedisClient:
    """Redis connection manager"""
    _instance = None
    _client = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._client is None:
            self._client = redis.Redis(
                host=settings.redis_host,
                port=settings.redis_port,
                db=0,
                decode_responses=True
            )

    def get_client(self):
        """Get Redis client instance"""
        return self._client

    def ping(self) -> bool:
        """Check the connection, False when Redis is unreachable"""
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


# Global instance (connection is lazy, nothing is opened until first command)
redis_client = RedisClient()
