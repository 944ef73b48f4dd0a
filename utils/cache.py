import redis
import json
import logging
import os
from typing import Optional, Any

logger = logging.getLogger(__name__)

# Redis configuration
CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() in ('1', 'true', 'yes')
REDIS_HOST = os.getenv('REDIS_HOST', 'localhost')
REDIS_PORT = int(os.getenv('REDIS_PORT', 6379))
REDIS_DB = int(os.getenv('REDIS_DB', 0))
REDIS_PASSWORD = os.getenv('REDIS_PASSWORD', None)

# Cache TTL settings (in seconds)
CACHE_TTL_SHORT = 300  # 5 minutes
CACHE_TTL_MEDIUM = 600  # 10 minutes

AVAILABLE_USERS_PATTERN = "users:available:*"


def _connect():
    if not CACHE_ENABLED:
        logger.info("Caching disabled by CACHE_ENABLED")
        return None
    try:
        client = redis.Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            password=REDIS_PASSWORD,
            decode_responses=True,
            socket_connect_timeout=5
        )
        client.ping()
        logger.info(f"Redis connected successfully at {REDIS_HOST}:{REDIS_PORT}")
        return client
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {str(e)}. Caching will be disabled.")
        return None


redis_client = _connect()


class CacheManager:
    """Manager for Redis caching operations"""

    @staticmethod
    def is_available() -> bool:
        return redis_client is not None

    @staticmethod
    def get(key: str) -> Optional[Any]:
        """
        Get value from cache

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/error
        """
        if not CacheManager.is_available():
            return None

        try:
            value = redis_client.get(key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, ValueError) as e:
            logger.error(f"Cache get error for key '{key}': {str(e)}")
            return None

    @staticmethod
    def set(key: str, value: Any, ttl: int = CACHE_TTL_MEDIUM) -> bool:
        """
        Set value in cache with TTL

        Args:
            key: Cache key
            value: Value to cache (will be JSON serialized)
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not CacheManager.is_available():
            return False

        try:
            redis_client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"Cached key '{key}' with TTL {ttl}s")
            return True
        except (redis.RedisError, TypeError) as e:
            logger.error(f"Cache set error for key '{key}': {str(e)}")
            return False

    @staticmethod
    def delete(key: str) -> bool:
        if not CacheManager.is_available():
            return False

        try:
            redis_client.delete(key)
            logger.debug(f"Deleted cache key '{key}'")
            return True
        except redis.RedisError as e:
            logger.error(f"Cache delete error for key '{key}': {str(e)}")
            return False

    @staticmethod
    def delete_pattern(pattern: str) -> int:
        """
        Delete all keys matching a pattern

        Args:
            pattern: Pattern to match (e.g., 'users:available:12:*')

        Returns:
            Number of keys deleted
        """
        if not CacheManager.is_available():
            return 0

        try:
            keys = list(redis_client.scan_iter(match=pattern))
            if keys:
                deleted = redis_client.delete(*keys)
                logger.debug(f"Deleted {deleted} cache keys matching '{pattern}'")
                return deleted
            return 0
        except redis.RedisError as e:
            logger.error(f"Cache delete pattern error for '{pattern}': {str(e)}")
            return 0

    @staticmethod
    def invalidate_available_users():
        """Drop every cached candidate listing; any user or reaction change can affect them"""
        CacheManager.delete_pattern(AVAILABLE_USERS_PATTERN)

    @staticmethod
    def invalidate_user_cache(user_id: int):
        """
        Invalidate all cache entries for a specific user

        Args:
            user_id: User ID
        """
        CacheManager.delete(build_user_profile_cache_key(user_id))
        CacheManager.invalidate_available_users()
        logger.info(f"Invalidated cache for user {user_id}")


# Cache key builders
def build_available_users_cache_key(user_id: int, limit: int, offset: int) -> str:
    """Build cache key for a page of candidate users"""
    return f"users:available:{user_id}:{limit}:{offset}"


def build_user_profile_cache_key(user_id: int) -> str:
    """Build cache key for user profile"""
    return f"user:profile:{user_id}"
