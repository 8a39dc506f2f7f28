import json
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol

from attendance_api.redis_config import CacheClient
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)

# Map size above which expired keys are swept on the next admission
PRUNE_THRESHOLD = 1024


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class CooldownStore(Protocol):
    async def try_acquire(self, key: str, cooldown_seconds: float) -> float:
        """Records an admission and returns 0, or returns the seconds left."""
        ...


class InMemoryCooldownStore:
    """Per-process key -> last admitted attempt map."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._last_admitted: Dict[str, float] = {}
        self._lock = threading.Lock()

    async def try_acquire(self, key: str, cooldown_seconds: float) -> float:
        with self._lock:
            now = self.clock()
            last = self._last_admitted.get(key)
            if last is not None and now - last < cooldown_seconds:
                return cooldown_seconds - (now - last)

            self._last_admitted[key] = now
            if len(self._last_admitted) > PRUNE_THRESHOLD:
                self._prune(now, cooldown_seconds)
            return 0.0

    def _prune(self, now: float, cooldown_seconds: float) -> None:
        expired = [
            key
            for key, last in self._last_admitted.items()
            if now - last >= cooldown_seconds
        ]
        for key in expired:
            del self._last_admitted[key]


class CacheCooldownStore:
    """Shared cooldowns in Redis, for deployments running several instances."""

    def __init__(self, cache: CacheClient, prefix: str = "session-create"):
        self.cache = cache
        self.prefix = prefix

    async def try_acquire(self, key: str, cooldown_seconds: float) -> float:
        cache_key = f"{self.prefix}:{key}"
        ttl_ms = max(1, int(cooldown_seconds * 1000))

        if await self.cache.set_if_absent(cache_key, str(time.time()), ttl_ms):
            return 0.0

        remaining_ms = await self.cache.ttl_ms(cache_key)
        if remaining_ms > 0:
            return remaining_ms / 1000

        # Expired between SET and PTTL
        if await self.cache.set_if_absent(cache_key, str(time.time()), ttl_ms):
            return 0.0
        return cooldown_seconds


class SessionRateLimiter:
    """
    Rejects session creation attempts for the same (caller, subject, section)
    within the cooldown window of the last admitted attempt.

    Rejected attempts leave the stored timestamp untouched, so every call in a
    burst is told to come back at the same moment.
    """

    def __init__(self, store: CooldownStore, cooldown_seconds: float = 5.0):
        self.store = store
        self.cooldown_seconds = cooldown_seconds

    @staticmethod
    def make_key(caller_id: int, subject: str, section: str) -> str:
        return json.dumps([caller_id, subject, section])

    async def check(self, caller_id: int, subject: str, section: str) -> RateLimitDecision:
        key = self.make_key(caller_id, subject, section)
        remaining = await self.store.try_acquire(key, self.cooldown_seconds)
        if remaining <= 0:
            return RateLimitDecision(allowed=True)

        retry_after = max(1, math.ceil(remaining))
        logger.info(f"Session creation throttled for {key}, retry after {retry_after}s")
        return RateLimitDecision(allowed=False, retry_after=retry_after)
