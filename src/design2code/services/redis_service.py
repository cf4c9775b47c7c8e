# src/design2code/services/redis_service.py

import re
import json
import time
import logging
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple, Union
import redis.asyncio as aioredis
import redis.exceptions
from design2code.core.config import settings

logger = logging.getLogger(__name__)

Expire = Optional[Union[int, timedelta]]

# e.g. "MOVED 3999 10.0.0.12:6381" / "ASK 3999 [::1]:6381"
_REDIRECT_PATTERN = re.compile(r"^(?P<kind>MOVED|ASK)\s+(?P<slot>\d+)\s+(?P<addr>\S+)$")

# 从主连接复制到重定向连接的参数
_INHERITED_CONNECTION_KWARGS = ("username", "password", "db", "decode_responses", "encoding", "socket_timeout")


class RedirectTarget(NamedTuple):
    kind: str          # "MOVED" | "ASK"
    slot: Optional[int]
    host: str
    port: int

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def parse_redirect(error: Exception) -> Optional[RedirectTarget]:
    """
    从集群重定向错误中解析目标节点。
    redis-py 会把 MOVED/ASK 解析为 MovedError/AskError (前缀已被剥离),
    代理或旧版本可能只给出原始 ResponseError 文本, 两种形式都要支持。
    无法识别时返回 None。
    """
    if isinstance(error, redis.exceptions.AskError):
        kind = "MOVED" if isinstance(error, redis.exceptions.MovedError) else "ASK"
        return RedirectTarget(kind, getattr(error, "slot_id", None), error.host, int(error.port))

    if not isinstance(error, redis.exceptions.ResponseError):
        return None

    match = _REDIRECT_PATTERN.match(str(error).strip())
    if not match:
        return None
    host, sep, port = match.group("addr").rpartition(":")
    if not sep or not host or not port.isdigit():
        return None
    return RedirectTarget(match.group("kind"), int(match.group("slot")), host.strip("[]"), int(port))


class RedirectConnectionPool:
    """
    重定向目标节点的二级连接池, 按 host:port 记忆化。
    容量有上限 (LRU 淘汰), 超过空闲时间的连接在下次获取时被关闭回收。
    """
    def __init__(
        self,
        factory: Callable[[str, int], aioredis.Redis],
        max_size: int = settings.REDIS_REDIRECT_POOL_MAX_SIZE,
        idle_seconds: float = settings.REDIS_REDIRECT_POOL_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._factory = factory
        self.max_size = max_size
        self.idle_seconds = idle_seconds
        self._clock = clock
        # address -> (client, last_used)
        self._clients: "OrderedDict[str, Tuple[aioredis.Redis, float]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, address: str) -> bool:
        return address in self._clients

    async def acquire(self, host: str, port: int) -> aioredis.Redis:
        now = self._clock()
        evicted = self._collect_idle(now)

        address = f"{host}:{port}"
        entry = self._clients.get(address)
        if entry is not None:
            client = entry[0]
            self._clients[address] = (client, now)
            self._clients.move_to_end(address)
        else:
            client = self._factory(host, port)
            self._clients[address] = (client, now)
            logger.info(f"Opened redirect connection to {address} ({len(self._clients)}/{self.max_size})")
            while len(self._clients) > self.max_size:
                oldest, (old_client, _) = self._clients.popitem(last=False)
                evicted.append((oldest, old_client))

        await self._close_all(evicted)
        return client

    async def close(self):
        evicted = [(address, client) for address, (client, _) in self._clients.items()]
        self._clients.clear()
        await self._close_all(evicted)

    def _collect_idle(self, now: float) -> list:
        expired = [
            address for address, (_, last_used) in self._clients.items()
            if now - last_used > self.idle_seconds
        ]
        return [(address, self._clients.pop(address)[0]) for address in expired]

    async def _close_all(self, clients: list):
        for address, client in clients:
            try:
                await client.aclose()
            except (redis.exceptions.RedisError, OSError) as e:
                logger.warning(f"Failed to close redirect connection to {address}: {e}")


class RedisService:
    """
    一个封装了 aioredis 客户端的通用服务，提供了应用层面的常用方法。
    缓存只是加速层: 读写失败 (包括集群重定向重试失败) 一律降级为 "未命中"/"未写入" 并记录告警, 从不向调用方抛出。
    """
    def __init__(self, client: aioredis.Redis = None, redirect_pool: Optional[RedirectConnectionPool] = None):
        self.client = client if client else aioredis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )
        # 空连接池 len() 为 0, 不能用 or 判断
        if redirect_pool is None:
            redirect_pool = RedirectConnectionPool(self._open_redirect_client)
        self.redirect_pool = redirect_pool

    def _open_redirect_client(self, host: str, port: int) -> aioredis.Redis:
        pool = getattr(self.client, "connection_pool", None)
        base_kwargs: Dict[str, Any] = getattr(pool, "connection_kwargs", None) or {}
        kwargs = {k: base_kwargs[k] for k in _INHERITED_CONNECTION_KWARGS if k in base_kwargs}
        return aioredis.Redis(host=host, port=port, **kwargs)

    async def close(self):
        await self.redirect_pool.close()
        await self.client.aclose()

    async def _execute(self, method: str, *args, **kwargs) -> Any:
        """
        在主连接上执行单条命令; 收到 MOVED/ASK 时对目标节点重试一次 (ASK 先发送 ASKING)。
        重定向无法解析或重试仍失败时抛出异常, 由调用方决定如何降级。
        """
        try:
            return await getattr(self.client, method)(*args, **kwargs)
        except redis.exceptions.ResponseError as e:
            target = parse_redirect(e)
            if target is None:
                raise
            logger.debug(f"Redis {target.kind} redirect for '{method}' to {target.address}")

        node = await self.redirect_pool.acquire(target.host, target.port)
        if target.kind == "ASK":
            pipe = node.pipeline(transaction=False)
            pipe.execute_command("ASKING")
            getattr(pipe, method)(*args, **kwargs)
            results = await pipe.execute()
            return results[-1]
        return await getattr(node, method)(*args, **kwargs)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._execute("get", key)
        except (redis.exceptions.RedisError, OSError) as e:
            logger.warning(f"Redis GET degraded to miss for key '{key}': {e}")
            return None

    async def set(self, key: str, value: Any, expire: Expire = None) -> bool:
        try:
            await self._execute("set", key, value, ex=expire)
            return True
        except (redis.exceptions.RedisError, OSError) as e:
            logger.warning(f"Redis SET skipped for key '{key}': {e}")
            return False

    async def set_json(self, key: str, data: Any, expire: Expire = None) -> bool:
        """
        将 Python 对象序列化为 JSON 并存入 Redis。

        :param key: Redis 键。
        :param data: 任何可被 json.dumps 序列化的 Python 对象。
        :param expire: 可选的过期时间 (秒或 timedelta)。
        """
        return await self.set(key, json.dumps(data, ensure_ascii=False), expire=expire)

    async def get_json(self, key: str) -> Optional[Any]:
        """
        从 Redis 获取一个键，并将其 JSON 值反序列化为 Python 对象。
        键不存在、缓存不可用或内容损坏时返回 None。
        """
        value = await self.get(key)
        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry '{key}'")
            return None

    async def delete_key(self, key: str) -> int:
        try:
            return await self._execute("delete", key)
        except (redis.exceptions.RedisError, OSError) as e:
            logger.warning(f"Redis DEL skipped for key '{key}': {e}")
            return 0
