from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from application.ports.expiring_store import ExpiringStore, StoreUnavailableError
from infrastructure.cache import InMemoryExpiringStore, RedisExpiringStore


@pytest.mark.asyncio
async def test_memory_store_expiry(store, clock):
    await store.set("k", "v", 1000)
    assert await store.get("k") == "v"
    assert await store.ttl_ms("k") == 1000

    clock.advance(milliseconds=999)
    assert await store.exists("k")
    clock.advance(milliseconds=1)
    assert not await store.exists("k")
    assert await store.get("k") is None
    assert await store.ttl_ms("k") is None


@pytest.mark.asyncio
async def test_memory_store_set_if_absent(store, clock):
    assert await store.set_if_absent("lock", "1", 500)
    assert not await store.set_if_absent("lock", "2", 500)
    assert await store.get("lock") == "1"
    clock.advance(milliseconds=500)
    assert await store.set_if_absent("lock", "3", 500)


@pytest.mark.asyncio
async def test_memory_store_incr_keeps_original_ttl(store, clock):
    assert await store.incr("n", 1000) == 1
    clock.advance(milliseconds=600)
    assert await store.incr("n", 1000) == 2
    assert await store.ttl_ms("n") == 400
    clock.advance(milliseconds=400)
    assert await store.incr("n", 1000) == 1


@pytest.mark.asyncio
async def test_memory_store_delete(store):
    await store.set("a", "1", 1000)
    await store.set("b", "1", 1000)
    assert await store.delete("a", "b", "missing") == 2


@pytest.mark.asyncio
async def test_memory_store_expire_replaces_ttl(store, clock):
    assert not await store.expire("missing", 1000)
    await store.incr("n", 1000)
    clock.advance(milliseconds=900)

    assert await store.expire("n", 5000)
    assert await store.ttl_ms("n") == 5000
    assert await store.get("n") == "1"


def test_stores_satisfy_port():
    assert isinstance(InMemoryExpiringStore(), ExpiringStore)
    assert isinstance(RedisExpiringStore(MagicMock()), ExpiringStore)


@pytest.mark.asyncio
async def test_redis_store_expire_uses_pexpire():
    client = MagicMock()
    client.pexpire = AsyncMock(side_effect=[True, False])
    redis_store = RedisExpiringStore(client, namespace="auth-core")

    assert await redis_store.expire("login_attempt:bob@example.com", 1_800_000)
    client.pexpire.assert_awaited_with("auth-core:login_attempt:bob@example.com", 1_800_000)
    assert not await redis_store.expire("missing", 1000)


@pytest.mark.asyncio
async def test_redis_store_namespaces_keys():
    client = MagicMock()
    client.set = AsyncMock(return_value=True)
    client.exists = AsyncMock(return_value=1)
    redis_store = RedisExpiringStore(client, namespace="auth-core:")

    await redis_store.set("jwt:blacklist:abc", "1", 1500)
    client.set.assert_awaited_once_with("auth-core:jwt:blacklist:abc", "1", px=1500)
    assert await redis_store.exists("jwt:blacklist:abc")
    client.exists.assert_awaited_once_with("auth-core:jwt:blacklist:abc")


@pytest.mark.asyncio
async def test_redis_store_ttl_mapping():
    client = MagicMock()
    client.pttl = AsyncMock(side_effect=[2500, -2, -1])
    redis_store = RedisExpiringStore(client)

    assert await redis_store.ttl_ms("k") == 2500
    assert await redis_store.ttl_ms("k") is None
    assert await redis_store.ttl_ms("k") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,command,args",
    [
        ("get", "get", ("k",)),
        ("exists", "exists", ("k",)),
        ("set", "set", ("k", "v", 10)),
        ("expire", "pexpire", ("k", 10)),
    ],
)
async def test_redis_errors_become_store_unavailable(method, command, args):
    client = MagicMock()
    setattr(client, command, AsyncMock(side_effect=RedisConnectionError("down")))
    redis_store = RedisExpiringStore(client)

    with pytest.raises(StoreUnavailableError):
        await getattr(redis_store, method)(*args)
