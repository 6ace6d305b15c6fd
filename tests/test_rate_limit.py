"""Token-bucket limiter tests with a fake clock."""

import pytest

from payplan.common.errors import RateLimited
from payplan.common.rate_limit import MemoryBucketStore, RedisBucketStore, TokenBucketLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value


class FakeRedis:
    """Just enough of the redis hash API for the bucket store."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}

    def hmget(self, key, *fields):
        values = self.hashes.get(key, {})
        return [values.get(name) for name in fields]

    def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    def expire(self, key, seconds):
        self.ttls[key] = seconds


def test_bucket_allows_capacity_then_rejects():
    clock = FakeClock()
    limiter = TokenBucketLimiter(MemoryBucketStore(), per_minute=3, name="portal", clock=clock)
    for _ in range(3):
        limiter.hit("actor-1")
    with pytest.raises(RateLimited):
        limiter.hit("actor-1")


def test_bucket_refills_over_time():
    clock = FakeClock()
    limiter = TokenBucketLimiter(MemoryBucketStore(), per_minute=60, name="portal", clock=clock)
    for _ in range(60):
        limiter.hit("actor-1")
    with pytest.raises(RateLimited):
        limiter.hit("actor-1")
    clock.value += 1.0
    limiter.hit("actor-1")


def test_actors_have_separate_buckets():
    limiter = TokenBucketLimiter(MemoryBucketStore(), per_minute=1, name="operator", clock=FakeClock())
    limiter.hit("owner-1")
    limiter.hit("owner-2")
    with pytest.raises(RateLimited):
        limiter.hit("owner-1")


def test_state_is_shared_through_the_store():
    """Two limiter instances over one store behave like one replica set."""

    redis_client = FakeRedis()
    clock = FakeClock()
    first = TokenBucketLimiter(RedisBucketStore(redis_client), per_minute=2, name="portal", clock=clock)
    second = TokenBucketLimiter(RedisBucketStore(redis_client), per_minute=2, name="portal", clock=clock)
    first.hit("actor-1")
    second.hit("actor-1")
    with pytest.raises(RateLimited):
        first.hit("actor-1")
    assert redis_client.ttls["tokenbucket:portal:actor-1"] == 120
