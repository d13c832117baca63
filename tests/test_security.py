from benefits_enrollment.api.security import CSRFTokenStore, IPBlockList
from benefits_enrollment.database.redis import RedisCache
from benefits_enrollment.utils.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_cache_entries_expire():
    clock = FakeClock()
    cache = RedisCache(clock=clock)
    cache.set("k", {"v": 1}, ttl=10)
    assert cache.get("k") == {"v": 1}
    clock.advance(10)
    assert cache.get("k") is None


def test_expired_entries_are_swept_on_write():
    clock = FakeClock()
    cache = RedisCache(clock=clock)
    for i in range(50):
        cache.set(f"csrf:abandoned-{i}", {"token": "t"}, ttl=10)
    cache.set("csrf:kept", {"token": "t"}, ttl=100)

    clock.advance(10)
    cache.set("csrf:fresh", {"token": "t"}, ttl=10)

    assert sorted(cache._entries) == ["csrf:fresh", "csrf:kept"]


def test_rewritten_key_keeps_its_new_expiry():
    clock = FakeClock()
    cache = RedisCache(clock=clock)
    cache.set("k", {"v": 1}, ttl=10)
    cache.set("k", {"v": 2}, ttl=100)

    clock.advance(10)
    cache.set("other", {}, ttl=10)
    assert cache.get("k") == {"v": 2}


def test_cache_returns_copies():
    cache = RedisCache()
    cache.set("k", {"v": 1}, ttl=10)
    cache.get("k")["v"] = 2
    assert cache.get("k") == {"v": 1}


def test_csrf_token_round_trip_and_expiry():
    clock = FakeClock()
    tokens = CSRFTokenStore(RedisCache(clock=clock))
    token = tokens.issue("session-1")

    assert tokens.validate("session-1", token)
    assert not tokens.validate("session-1", "wrong")
    assert not tokens.validate("session-2", token)
    assert not tokens.validate("session-1", None)

    clock.advance(30 * 60)
    assert not tokens.validate("session-1", token)


def test_reissuing_replaces_the_previous_token():
    tokens = CSRFTokenStore(RedisCache())
    first = tokens.issue("s")
    second = tokens.issue("s")
    assert first != second
    assert tokens.validate("s", second)
    assert not tokens.validate("s", first)


def test_ip_block_list_with_ttl():
    clock = FakeClock()
    blocked = IPBlockList(RedisCache(clock=clock), default_ttl=60)
    blocked.block("10.0.0.9", reason="credential stuffing")

    assert blocked.is_blocked("10.0.0.9")
    assert not blocked.is_blocked("10.0.0.10")
    assert not blocked.is_blocked(None)

    clock.advance(61)
    assert not blocked.is_blocked("10.0.0.9")


def test_ip_can_be_unblocked():
    blocked = IPBlockList(RedisCache())
    blocked.block("10.0.0.9", ttl=600)
    blocked.unblock("10.0.0.9")
    assert not blocked.is_blocked("10.0.0.9")


def test_rate_limiter_sliding_window_per_key():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=3600, clock=clock)

    assert limiter.allow("1.1.1.1")
    assert limiter.allow("1.1.1.1")
    assert not limiter.allow("1.1.1.1")
    assert limiter.allow("2.2.2.2")

    clock.advance(3600)
    assert limiter.allow("1.1.1.1")
    assert limiter.allow("1.1.1.1")
    assert not limiter.allow("1.1.1.1")


def test_rate_limiter_forgets_idle_keys():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
    for i in range(100):
        limiter.allow(f"10.0.0.{i}")
    assert len(limiter._request_times) == 100

    clock.advance(60)
    assert limiter.allow("10.1.0.1")
    assert list(limiter._request_times) == ["10.1.0.1"]


def test_rate_limiter_disabled_with_zero_limit():
    limiter = RateLimiter(max_requests=0)
    assert all(limiter.allow("k") for _ in range(100))
