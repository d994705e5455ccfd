"""过期键存储对外暴露的接口"""
from .memory_store import InMemoryExpiringStore
from .redis_store import (
    RedisExpiringStore,
    init_redis_store,
    shutdown_redis_store,
    get_redis_store,
)

__all__ = [
    "InMemoryExpiringStore",
    "RedisExpiringStore",
    "init_redis_store",
    "shutdown_redis_store",
    "get_redis_store",
]
