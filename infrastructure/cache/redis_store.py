"""Redis 过期键存储实现（ExpiringStore 端口）

所有 Redis 错误统一转换为 StoreUnavailableError，由调用方决定
fail-open 还是 fail-closed。
"""
from __future__ import annotations

import asyncio
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from application.ports.expiring_store import StoreUnavailableError
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class RedisExpiringStore:
    """基于Redis的过期键存储，键名带命名空间前缀"""

    def __init__(self, client: aioredis.Redis, namespace: str = "") -> None:
        self._client = client
        self._namespace = namespace.strip(":")

    def _format_key(self, key: str) -> str:
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(self._format_key(key))
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e

    async def set(self, key: str, value: str, ttl_ms: int) -> None:
        try:
            await self._client.set(self._format_key(key), value, px=max(1, int(ttl_ms)))
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        try:
            stored = await self._client.set(
                self._format_key(key), value, px=max(1, int(ttl_ms)), nx=True
            )
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e
        return bool(stored)

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(self._format_key(key)))
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._client.delete(*(self._format_key(k) for k in keys)))
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e

    async def incr(self, key: str, ttl_ms: int) -> int:
        """MULTI/EXEC 中先 SET NX PX 再 INCR：新键带过期时间，已有键保留原过期时间"""
        formatted_key = self._format_key(key)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(formatted_key, 0, px=max(1, int(ttl_ms)), nx=True)
                pipe.incr(formatted_key)
                _, value = await pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e
        return int(value)

    async def expire(self, key: str, ttl_ms: int) -> bool:
        try:
            return bool(await self._client.pexpire(self._format_key(key), max(1, int(ttl_ms))))
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e

    async def ttl_ms(self, key: str) -> Optional[int]:
        try:
            remaining = await self._client.pttl(self._format_key(key))
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e
        # -2: 键不存在；-1: 键没有过期时间（本存储写入的键都带过期时间）
        if remaining is None or remaining < 0:
            return None
        return int(remaining)


_redis_client: Optional[aioredis.Redis] = None
_store_instance: Optional[RedisExpiringStore] = None
_lock = asyncio.Lock()


async def init_redis_store(namespace: Optional[str] = None) -> RedisExpiringStore:
    """初始化Redis存储实例"""
    global _redis_client, _store_instance

    if _store_instance is not None:
        return _store_instance

    async with _lock:
        if _store_instance is not None:
            return _store_instance

        if not settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化Redis存储")

        client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
        )
        await client.ping()

        _redis_client = client
        _store_instance = RedisExpiringStore(
            client=client,
            namespace=namespace or settings.redis.namespace,
        )
        logger.info("redis_store_initialized", namespace=namespace or settings.redis.namespace)
        return _store_instance


def get_redis_store() -> Optional[RedisExpiringStore]:
    """获取全局Redis存储实例，未初始化时返回 None"""
    return _store_instance


async def shutdown_redis_store() -> None:
    """关闭Redis连接"""
    global _redis_client, _store_instance

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        _store_instance = None
