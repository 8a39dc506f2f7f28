import inspect
from typing import Protocol

import httpx
from redis.asyncio import Redis

from attendance_api.config import settings
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)


class CacheClient(Protocol):
    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool: ...

    async def ttl_ms(self, key: str) -> int: ...

    async def ping(self) -> None: ...

    async def close(self) -> None: ...


class RedisTcpCache:
    def __init__(self, client: Redis):
        self.client = client

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        return bool(await self.client.set(key, value, nx=True, px=ttl_ms))

    async def ttl_ms(self, key: str) -> int:
        return int(await self.client.pttl(key))

    async def ping(self) -> None:
        ping_result = self.client.ping()
        if inspect.isawaitable(ping_result):
            await ping_result

    async def close(self) -> None:
        close_result = self.client.aclose()
        if inspect.isawaitable(close_result):
            await close_result


class UpstashRestCache:
    def __init__(self, rest_url: str, token: str):
        self.client = httpx.AsyncClient(
            base_url=rest_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=5.0,
        )

    async def _run(self, *command: str) -> object | None:
        response = await self.client.post("/", json=list(command))
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, dict):
            if payload.get("error"):
                raise RuntimeError(str(payload["error"]))
            return payload.get("result")
        return None

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        result = await self._run("SET", key, value, "NX", "PX", str(ttl_ms))
        return result is not None

    async def ttl_ms(self, key: str) -> int:
        result = await self._run("PTTL", key)
        return int(result) if result is not None else -2

    async def ping(self) -> None:
        result = await self._run("PING")
        if str(result).upper() != "PONG":
            raise RuntimeError("Upstash REST ping failed")

    async def close(self) -> None:
        await self.client.aclose()


async def build_cache_client() -> CacheClient:
    """Builds and verifies the shared cache selected by CACHE_BACKEND."""
    backend = settings.CACHE_BACKEND.strip().lower()

    if backend == "upstash_rest":
        if not (settings.UPSTASH_REDIS_REST_URL and settings.UPSTASH_REDIS_REST_TOKEN):
            raise RuntimeError(
                "CACHE_BACKEND=upstash_rest requires UPSTASH_REDIS_REST_URL "
                "and UPSTASH_REDIS_REST_TOKEN."
            )
        cache: CacheClient = UpstashRestCache(
            settings.UPSTASH_REDIS_REST_URL, settings.UPSTASH_REDIS_REST_TOKEN
        )
    elif backend == "redis":
        cache = RedisTcpCache(Redis.from_url(settings.REDIS_URL, decode_responses=True))
    else:
        raise RuntimeError(f"Unsupported CACHE_BACKEND: {backend}")

    try:
        await cache.ping()
    except Exception:
        await cache.close()
        raise
    logger.info(f"Cache backend: {backend}")
    return cache
