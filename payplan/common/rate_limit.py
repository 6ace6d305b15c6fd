"""Token-bucket rate limiting keyed by actor id.

The bucket state lives in an injectable store so every replica shares the same
view. `RedisBucketStore` is the deployment store; `MemoryBucketStore` serves
single-process runs.
"""

import threading
from time import time

import redis

from payplan.common.config import settings
from payplan.common.errors import RateLimited
from payplan.common.logging import logger
from payplan.common.metrics import rate_limited_total


class RedisBucketStore:
    """Bucket state in Redis hashes (`tokens`, `updated_at`) with a short TTL."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 120) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds

    def load(self, key: str) -> tuple[float | None, float | None]:
        values = self.client.hmget(key, "tokens", "updated_at")
        tokens = float(values[0]) if values[0] is not None else None
        updated_at = float(values[1]) if values[1] is not None else None
        return tokens, updated_at

    def save(self, key: str, tokens: float, updated_at: float) -> None:
        self.client.hset(key, mapping={"tokens": tokens, "updated_at": updated_at})
        self.client.expire(key, self.ttl_seconds)


class MemoryBucketStore:
    def __init__(self) -> None:
        self._buckets: dict[str, tuple[float, float]] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> tuple[float | None, float | None]:
        with self._lock:
            return self._buckets.get(key, (None, None))

    def save(self, key: str, tokens: float, updated_at: float) -> None:
        with self._lock:
            self._buckets[key] = (tokens, updated_at)


class TokenBucketLimiter:
    """Capacity = refill rate = `per_minute` requests per actor."""

    def __init__(self, store, per_minute: int, name: str, service_name: str = "unknown-service", clock=time) -> None:
        self.store = store
        self.capacity = float(per_minute)
        self.refill_per_sec = self.capacity / 60.0
        self.name = name
        self.service_name = service_name
        self.clock = clock

    def hit(self, actor_id: str) -> None:
        """Consume one token for `actor_id` or raise `RateLimited`."""

        key = f"tokenbucket:{self.name}:{actor_id}"
        now = self.clock()
        tokens, updated_at = self.store.load(key)
        tokens = self.capacity if tokens is None else tokens
        updated_at = now if updated_at is None else updated_at
        elapsed = max(0.0, now - updated_at)
        tokens = min(self.capacity, tokens + elapsed * self.refill_per_sec)

        if tokens < 1.0:
            self.store.save(key, tokens, now)
            rate_limited_total.labels(service=self.service_name, bucket=self.name).inc()
            logger.warning("rate_limited bucket=%s", self.name)
            raise RateLimited("rate limit exceeded")
        self.store.save(key, tokens - 1.0, now)


def build_limiter(name: str, per_minute: int | None = None) -> TokenBucketLimiter:
    """Create a limiter backed by the configured store."""

    if settings.rate_limit_backend == "memory":
        store = MemoryBucketStore()
    else:
        store = RedisBucketStore(redis.Redis.from_url(settings.redis_url, decode_responses=True))
    return TokenBucketLimiter(
        store,
        per_minute or settings.rate_limit_per_minute,
        name=name,
        service_name=settings.service_name,
    )
