import fakeredis.aioredis
import pytest
from fastapi import Request, Response

from fragrance_battle.core.errors import RateLimitExceeded
from fragrance_battle.core.rate_limit import (
    InMemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
    build_rate_limit_store,
    client_identity,
)

WINDOW_MS = 60_000


def make_request(client_host: str = "10.0.0.1", forwarded_for: str | None = None) -> Request:
    headers = []
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode()))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/api/fragrances",
            "headers": headers,
            "client": (client_host, 5000),
            "query_string": b"",
        }
    )


class FakeClock:
    def __init__(self, now_ms: float = 1_000_000.0):
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms


async def test_admits_exactly_max_requests():
    store = InMemoryRateLimitStore()
    results = [await store.check_and_record("ip", 3, WINDOW_MS, 0) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert {r.limit for r in results} == {3}


async def test_window_resets_after_expiry():
    store = InMemoryRateLimitStore()
    for _ in range(2):
        await store.check_and_record("ip", 2, WINDOW_MS, 0)
    assert not (await store.check_and_record("ip", 2, WINDOW_MS, WINDOW_MS - 1)).allowed

    fresh = await store.check_and_record("ip", 2, WINDOW_MS, WINDOW_MS)
    assert fresh.allowed
    assert fresh.remaining == 1
    assert fresh.reset_at_ms == 2 * WINDOW_MS


async def test_window_is_anchored_at_first_request():
    store = InMemoryRateLimitStore()
    first = await store.check_and_record("ip", 5, WINDOW_MS, 1_000)
    later = await store.check_and_record("ip", 5, WINDOW_MS, 30_000)
    assert first.reset_at_ms == later.reset_at_ms == 1_000 + WINDOW_MS


async def test_clients_are_independent():
    store = InMemoryRateLimitStore()
    await store.check_and_record("a", 1, WINDOW_MS, 0)

    assert not (await store.check_and_record("a", 1, WINDOW_MS, 1)).allowed
    assert (await store.check_and_record("b", 1, WINDOW_MS, 1)).allowed


async def test_expired_windows_are_purged():
    store = InMemoryRateLimitStore()
    await store.check_and_record("a", 5, WINDOW_MS, 0)
    await store.check_and_record("b", 5, WINDOW_MS, 10)
    assert len(store) == 2

    await store.check_and_record("c", 5, WINDOW_MS, WINDOW_MS + 10)
    assert len(store) == 1


async def test_reset_forgets_all_windows():
    store = InMemoryRateLimitStore()
    await store.check_and_record("a", 1, WINDOW_MS, 0)
    await store.reset()

    assert len(store) == 0
    assert (await store.check_and_record("a", 1, WINDOW_MS, 1)).allowed


async def test_result_headers():
    result = await InMemoryRateLimitStore().check_and_record("ip", 10, WINDOW_MS, 1_500)
    assert result.headers() == {
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "9",
        "X-RateLimit-Reset": "62",
    }


def test_client_identity_prefers_first_forwarded_hop():
    assert client_identity(make_request(forwarded_for="1.2.3.4, 5.6.7.8")) == "1.2.3.4"
    assert client_identity(make_request(client_host="10.0.0.9")) == "10.0.0.9"


async def test_limiter_sets_headers_and_rejects_over_limit():
    clock = FakeClock()
    limiter = RateLimiter("test", 2, WINDOW_MS, InMemoryRateLimitStore(), clock=clock)

    response = Response()
    result = await limiter(make_request(), response)
    assert result.allowed
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "1"

    await limiter(make_request(), Response())
    clock.now_ms += 15_000
    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter(make_request(), Response())

    exc = exc_info.value
    assert exc.status_code == 429
    assert exc.code == "RATE_LIMIT_EXCEEDED"
    assert exc.headers["Retry-After"] == "45"
    assert exc.headers["X-RateLimit-Remaining"] == "0"


async def test_limiters_with_different_names_do_not_share_budget():
    store = InMemoryRateLimitStore()
    clock = FakeClock()
    search = RateLimiter("search", 1, WINDOW_MS, store, clock=clock)
    ai = RateLimiter("ai", 1, WINDOW_MS, store, clock=clock)

    await search(make_request(), Response())
    await ai(make_request(), Response())
    with pytest.raises(RateLimitExceeded):
        await search(make_request(), Response())


async def test_forwarded_clients_are_tracked_separately():
    limiter = RateLimiter("test", 1, WINDOW_MS, InMemoryRateLimitStore(), clock=FakeClock())

    await limiter(make_request(forwarded_for="1.1.1.1"), Response())
    await limiter(make_request(forwarded_for="2.2.2.2"), Response())
    with pytest.raises(RateLimitExceeded):
        await limiter(make_request(forwarded_for="1.1.1.1"), Response())


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        build_rate_limit_store("memcached")
    assert isinstance(build_rate_limit_store("memory"), InMemoryRateLimitStore)


# ---------------------------------------------------------------------------
# Redis-backed store
# ---------------------------------------------------------------------------
@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


class TestRedisRateLimitStore:
    async def test_admits_exactly_max_requests(self, redis_client):
        store = RedisRateLimitStore(redis_client)
        results = [await store.check_and_record("ip", 3, WINDOW_MS, 0) for _ in range(4)]

        assert [(r.allowed, r.remaining) for r in results] == [(True, 2), (True, 1), (True, 0), (False, 0)]
        assert {r.limit for r in results} == {3}

    async def test_first_hit_sets_window_ttl(self, redis_client):
        store = RedisRateLimitStore(redis_client)

        first = await store.check_and_record("ip", 5, WINDOW_MS, 1_000)

        assert first.reset_at_ms == 1_000 + WINDOW_MS
        assert 0 < await redis_client.pttl("ratelimit:ip") <= WINDOW_MS

    async def test_key_without_ttl_gets_one(self, redis_client):
        await redis_client.set("ratelimit:ip", 1)
        store = RedisRateLimitStore(redis_client)

        result = await store.check_and_record("ip", 5, WINDOW_MS, 0)

        assert result.allowed
        assert result.remaining == 3
        assert 0 < await redis_client.pttl("ratelimit:ip") <= WINDOW_MS

    async def test_reset_only_touches_rate_limit_keys(self, redis_client):
        store = RedisRateLimitStore(redis_client)
        await store.check_and_record("a", 1, WINDOW_MS, 0)
        await store.check_and_record("b", 1, WINDOW_MS, 0)
        await redis_client.set("revoked:abc", "1")

        await store.reset()

        assert await redis_client.exists("ratelimit:a", "ratelimit:b") == 0
        assert await redis_client.exists("revoked:abc") == 1
        assert (await store.check_and_record("a", 1, WINDOW_MS, 0)).allowed

    async def test_limiter_over_shared_store(self, redis_client):
        store = RedisRateLimitStore(redis_client)
        first_instance = RateLimiter("search", 1, WINDOW_MS, store, clock=FakeClock())
        second_instance = RateLimiter("search", 1, WINDOW_MS, store, clock=FakeClock())

        await first_instance(make_request(), Response())
        with pytest.raises(RateLimitExceeded):
            await second_instance(make_request(), Response())
        assert await redis_client.get("ratelimit:search:10.0.0.1") == "2"
