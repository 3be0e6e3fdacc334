import asyncio

from koi_feed.connectors.cache import TTLCache
from koi_feed.connectors.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_get_or_load_is_idempotent_within_ttl():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    calls = {"n": 0}

    async def loader():
        calls["n"] += 1
        return {"v": calls["n"]}

    v1 = asyncio.run(cache.get_or_load("k", 60, loader))
    clock.now += 59
    v2 = asyncio.run(cache.get_or_load("k", 60, loader))
    assert v1 == v2 == {"v": 1}
    assert calls["n"] == 1


def test_get_or_load_reloads_after_ttl():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    calls = {"n": 0}

    async def loader():
        calls["n"] += 1
        return calls["n"]

    asyncio.run(cache.get_or_load("k", 60, loader))
    clock.now += 60
    assert asyncio.run(cache.get_or_load("k", 60, loader)) == 2
    assert calls["n"] == 2


def test_store_empty_false_does_not_cache_empty_results():
    cache = TTLCache(clock=FakeClock())
    calls = {"n": 0}

    async def loader():
        calls["n"] += 1
        return []

    asyncio.run(cache.get_or_load("k", 60, loader, store_empty=False))
    asyncio.run(cache.get_or_load("k", 60, loader, store_empty=False))
    assert calls["n"] == 2
    assert cache.get("k", 60) is None


def test_readers_choose_their_own_ttl():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("live", [1])
    clock.now += 45
    assert cache.get("live", 30) is None
    assert cache.get("live", 120) == [1]


def test_clear_by_prefix_and_all():
    cache = TTLCache(clock=FakeClock())
    cache.set("lp-a", 1)
    cache.set("lp-b", 2)
    cache.set("sgg-a", 3)
    cache.clear("lp-")
    assert set(cache.info()) == {"sgg-a"}
    cache.clear()
    assert cache.info() == {}


def test_rate_limiter_spaces_calls_per_host_class():
    clock = FakeClock(0.0)
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)
        clock.now += seconds

    limiter = RateLimiter(min_interval=2.0, intervals={"liquipedia:callofduty": 2.5}, clock=clock, sleep=fake_sleep)

    async def run():
        await limiter.acquire("liquipedia:tft")
        await limiter.acquire("liquipedia:tft")
        await limiter.acquire("liquipedia:callofduty")
        await limiter.acquire("liquipedia:callofduty")

    asyncio.run(run())
    assert slept == [2.0, 2.5]


def test_rate_limiter_queues_concurrent_callers():
    clock = FakeClock(0.0)
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)
        clock.now += seconds

    limiter = RateLimiter(min_interval=2.0, clock=clock, sleep=fake_sleep)

    async def run():
        await asyncio.gather(*(limiter.acquire("liquipedia:tft") for _ in range(3)))

    asyncio.run(run())
    assert slept == [2.0, 2.0]


def test_rate_limiter_no_wait_after_interval_elapsed():
    clock = FakeClock(0.0)
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    limiter = RateLimiter(min_interval=2.0, clock=clock, sleep=fake_sleep)

    async def run():
        await limiter.acquire("liquipedia:pokemon")
        clock.now += 3.0
        await limiter.acquire("liquipedia:pokemon")

    asyncio.run(run())
    assert slept == []
