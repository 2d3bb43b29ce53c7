# =============================================================================
# 缓存模块
# =============================================================================
# 本模块提供 SEOMaster 的短期键值存储，支持 Redis 和无缓存两种模式。
# 主要职责：
#   1. 定义缓存后端的统一接口（CacheBackend）
#   2. 提供 Redis 实现（RedisCache）：原子性的 add（SET NX EX）与剩余 TTL 查询
#   3. 提供无操作实现（NoCache），在 Redis 未配置时使用
#   4. 通过 CacheProxy 惰性初始化全局缓存实例
#
# 架构角色：
#   - 被认证模块用于 OTP 重发频率限制（同一邮箱在间隔内只能发送一次）
#   - Redis 不可用时降级为 NoCache，限流随之关闭，业务流程不受影响
# =============================================================================

"""Cache module for SEOMaster.

Provides optional Redis-backed throttling keys with fallback to no-cache.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


class CacheBackend:
    """Abstract cache backend interface."""

    def add(self, key: str, value: Any, ttl: int) -> bool:
        """Set a value only if the key is absent.

        Returns:
            bool: ``True`` if the value was stored, ``False`` if the key
            already existed.
        """
        raise NotImplementedError

    def ttl(self, key: str) -> int:
        """Seconds until ``key`` expires, ``0`` if it is absent."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        """Delete a cached value."""
        raise NotImplementedError


class NoCache(CacheBackend):
    """No-op cache implementation.

    当 Redis 不可用或未配置时使用该实现。
    """

    def add(self, key: str, value: Any, ttl: int) -> bool:
        # 无缓存时总是视为写入成功，调用方的限流因此失效
        return True

    def ttl(self, key: str) -> int:
        return 0

    def delete(self, key: str) -> None:
        pass


class RedisCache(CacheBackend):
    """Redis-backed cache implementation.

    Values are stored as JSON strings. Redis errors are logged and treated
    as "not throttled" so that an outage never blocks sign-ups.
    """

    def __init__(self, host: str, port: int = 6379, password: str = "", db: int = 0):
        import redis

        self.client = redis.Redis(
            host=host,
            port=port,
            password=password if password else None,
            db=db,
            decode_responses=True,
        )
        logger.info(f"Redis cache initialized: {host}:{port}/{db}")

    def add(self, key: str, value: Any, ttl: int) -> bool:
        try:
            # SET NX EX：键不存在时才写入，原子操作
            return bool(self.client.set(key, json.dumps(value), ex=ttl, nx=True))
        except Exception as e:
            logger.warning(f"Redis add error for key {key}: {e}")
            return True

    def ttl(self, key: str) -> int:
        try:
            remaining = self.client.ttl(key)
        except Exception as e:
            logger.warning(f"Redis ttl error for key {key}: {e}")
            return 0
        # -2: 键不存在, -1: 无过期时间
        return max(int(remaining), 0)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except Exception as e:
            logger.warning(f"Redis delete error for key {key}: {e}")


def get_cache() -> CacheBackend:
    """Select the cache backend based on configuration.

    Returns:
        CacheBackend: Redis cache when configured, otherwise a NoCache instance.
    """
    from settings import settings

    if not settings.redis_available:
        return NoCache()
    return RedisCache(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
    )


# 全局缓存实例（惰性初始化）
_cache_instance: CacheBackend | None = None


def get_cache_instance() -> CacheBackend:
    """Get or create the global cache instance."""
    global _cache_instance
    if _cache_instance is None:
        _cache_instance = get_cache()
    return _cache_instance


def set_cache_instance(backend: CacheBackend | None) -> None:
    """Replace the global cache instance (``None`` resets to lazy init)."""
    global _cache_instance
    _cache_instance = backend


class CacheProxy:
    """Proxy object that delegates to the actual cache instance."""

    @property
    def _cache(self) -> CacheBackend:
        return get_cache_instance()

    def add(self, key: str, value: Any, ttl: int) -> bool:
        return self._cache.add(key, value, ttl)

    def ttl(self, key: str) -> int:
        return self._cache.ttl(key)

    def delete(self, key: str) -> None:
        self._cache.delete(key)


# 全局缓存代理实例：from core.cache import cache
cache = CacheProxy()
