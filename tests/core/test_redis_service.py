# tests/core/test_redis_service.py

import json
import pytest
import redis.exceptions
from unittest.mock import AsyncMock, MagicMock

from design2code.services.redis_service import (
    RedisService, RedirectConnectionPool, RedirectTarget, parse_redirect
)



class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_node():
    node = MagicMock()
    node.aclose = AsyncMock()
    node.get = AsyncMock(return_value="from-node")
    node.set = AsyncMock(return_value=True)
    return node


# ==============================================================================
# parse_redirect
# ==============================================================================

def test_parse_redirect_from_redis_py_errors():
    moved = parse_redirect(redis.exceptions.MovedError("3999 10.0.0.12:6381"))
    assert moved == RedirectTarget("MOVED", 3999, "10.0.0.12", 6381)

    ask = parse_redirect(redis.exceptions.AskError("12 10.0.0.13:6380"))
    assert ask.kind == "ASK"
    assert ask.address == "10.0.0.13:6380"


def test_parse_redirect_from_raw_response_text():
    target = parse_redirect(redis.exceptions.ResponseError("MOVED 7 [::1]:7000"))
    assert target == RedirectTarget("MOVED", 7, "::1", 7000)


def test_parse_redirect_ignores_other_errors():
    assert parse_redirect(redis.exceptions.ResponseError("WRONGTYPE Operation against a key")) is None
    assert parse_redirect(redis.exceptions.ResponseError("MOVED 7 nohostport")) is None
    assert parse_redirect(redis.exceptions.ConnectionError("refused")) is None


# ==============================================================================
# RedirectConnectionPool
# ==============================================================================

async def test_pool_reuses_connection_per_address():
    factory = MagicMock(side_effect=lambda host, port: make_node())
    pool = RedirectConnectionPool(factory, max_size=4, idle_seconds=60)

    first = await pool.acquire("10.0.0.1", 6379)
    again = await pool.acquire("10.0.0.1", 6379)

    assert first is again
    assert factory.call_count == 1
    assert "10.0.0.1:6379" in pool


async def test_pool_evicts_least_recently_used_when_full():
    pool = RedirectConnectionPool(lambda host, port: make_node(), max_size=2, idle_seconds=60)

    a = await pool.acquire("a", 1)
    await pool.acquire("b", 1)
    await pool.acquire("a", 1)       # a 变为最近使用
    await pool.acquire("c", 1)

    assert len(pool) == 2
    assert "a:1" in pool and "c:1" in pool
    assert "b:1" not in pool
    a.aclose.assert_not_awaited()


async def test_pool_closes_idle_connections():
    clock = FakeClock()
    pool = RedirectConnectionPool(lambda host, port: make_node(), max_size=4, idle_seconds=30, clock=clock)

    stale = await pool.acquire("a", 1)
    clock.now = 31
    fresh = await pool.acquire("b", 1)

    stale.aclose.assert_awaited_once()
    assert "a:1" not in pool
    assert len(pool) == 1

    await pool.close()
    fresh.aclose.assert_awaited_once()
    assert len(pool) == 0


def test_pool_rejects_zero_capacity():
    with pytest.raises(ValueError):
        RedirectConnectionPool(lambda host, port: make_node(), max_size=0)


# ==============================================================================
# RedisService
# ==============================================================================

def test_injected_empty_redirect_pool_is_kept():
    pool = RedirectConnectionPool(lambda host, port: make_node())
    assert len(pool) == 0

    service = RedisService(client=MagicMock(), redirect_pool=pool)
    assert service.redirect_pool is pool


async def test_moved_redirect_is_retried_on_target_node():
    node = make_node()
    client = MagicMock()
    client.get = AsyncMock(side_effect=redis.exceptions.MovedError("5 10.0.0.9:7001"))
    service = RedisService(client=client, redirect_pool=RedirectConnectionPool(lambda host, port: node))

    assert await service.get("k") == "from-node"
    node.get.assert_awaited_once_with("k")


async def test_ask_redirect_sends_asking_first():
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[b"OK", "asked-value"])
    node = make_node()
    node.pipeline.return_value = pipe

    client = MagicMock()
    client.get = AsyncMock(side_effect=redis.exceptions.AskError("5 10.0.0.9:7001"))
    service = RedisService(client=client, redirect_pool=RedirectConnectionPool(lambda host, port: node))

    assert await service.get("k") == "asked-value"
    node.pipeline.assert_called_once_with(transaction=False)
    pipe.execute_command.assert_called_once_with("ASKING")
    pipe.get.assert_called_once_with("k")


async def test_cache_failures_degrade_instead_of_raising():
    client = MagicMock()
    client.get = AsyncMock(side_effect=redis.exceptions.ConnectionError("down"))
    client.set = AsyncMock(side_effect=OSError("broken pipe"))
    client.delete = AsyncMock(side_effect=redis.exceptions.TimeoutError("slow"))
    service = RedisService(client=client)

    assert await service.get("k") is None
    assert await service.get_json("k") is None
    assert await service.set("k", "v") is False
    assert await service.delete_key("k") == 0


async def test_redirect_failure_on_target_degrades_to_miss():
    node = make_node()
    node.get = AsyncMock(side_effect=redis.exceptions.ConnectionError("node down"))
    client = MagicMock()
    client.get = AsyncMock(side_effect=redis.exceptions.MovedError("5 10.0.0.9:7001"))
    service = RedisService(client=client, redirect_pool=RedirectConnectionPool(lambda host, port: node))

    assert await service.get("k") is None


async def test_json_round_trip_and_corrupt_entries(redis_service, fake_redis_client):
    assert await redis_service.set_json("doc", {"name": "首页"}, expire=60)
    assert json.loads(fake_redis_client.store["doc"]) == {"name": "首页"}
    assert fake_redis_client.expirations["doc"] == 60
    assert await redis_service.get_json("doc") == {"name": "首页"}

    fake_redis_client.store["broken"] = "{not json"
    assert await redis_service.get_json("broken") is None
