from __future__ import annotations

import threading
import time

import pytest

from app.providers.airtime.token_cache import TokenCache, TokenError


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _fetcher(*tokens, expires_in=3600):
    calls = {"n": 0}

    def fetch():
        value = tokens[min(calls["n"], len(tokens) - 1)]
        calls["n"] += 1
        return value, expires_in

    return fetch, calls


def test_token_is_cached_until_refresh_point():
    clock = FakeClock()
    fetch, calls = _fetcher("tok-1", "tok-2")
    cache = TokenCache(fetch, clock=clock, safety_buffer_s=60)

    assert cache.get() == "tok-1"
    clock.now += 3_000
    assert cache.get() == "tok-1"
    assert calls["n"] == 1

    # inside the safety buffer: refreshed before it can expire
    clock.now += 541
    assert cache.get() == "tok-2"
    assert calls["n"] == 2


def test_never_served_past_expiry_even_with_short_ttl():
    clock = FakeClock()
    fetch, calls = _fetcher("a", "b", expires_in=30)
    cache = TokenCache(fetch, clock=clock, safety_buffer_s=60)

    assert cache.get() == "a"
    cached = cache.cached
    assert cached.refresh_at < cached.expires_at
    clock.now = cached.refresh_at
    assert cache.get() == "b"


def test_invalidate_forces_refresh():
    clock = FakeClock()
    fetch, calls = _fetcher("a", "b")
    cache = TokenCache(fetch, clock=clock)

    assert cache.get() == "a"
    cache.invalidate()
    assert cache.get() == "b"
    assert calls["n"] == 2


@pytest.mark.parametrize(
    "result",
    [("", 3600), (None, 3600), ("tok", 0), ("tok", -5), ("tok", "soon")],
)
def test_bad_token_responses_raise(result):
    cache = TokenCache(lambda: result, clock=FakeClock())
    with pytest.raises(TokenError):
        cache.get()
    assert cache.cached is None


def test_fetch_exception_is_wrapped_and_nothing_cached():
    def boom():
        raise ConnectionError("dns failure")

    cache = TokenCache(boom, clock=FakeClock(), name="safaricom")
    with pytest.raises(TokenError) as exc:
        cache.get()
    assert "safaricom" in str(exc.value)
    assert cache.cached is None


def test_stale_token_is_dropped_when_refresh_fails():
    clock = FakeClock()
    state = {"fail": False}

    def fetch():
        if state["fail"]:
            raise TokenError("down")
        return "a", 100

    cache = TokenCache(fetch, clock=clock, safety_buffer_s=10)
    assert cache.get() == "a"
    clock.now += 95
    state["fail"] = True
    with pytest.raises(TokenError):
        cache.get()
    assert cache.cached is None


def test_concurrent_callers_share_one_refresh():
    calls = {"n": 0}
    gate = threading.Event()

    def slow_fetch():
        calls["n"] += 1
        gate.wait(timeout=2)
        return "shared", 3600

    cache = TokenCache(slow_fetch)
    seen = []

    def worker():
        seen.append(cache.get())

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    time.sleep(0.05)
    gate.set()
    for t in threads:
        t.join()

    assert calls["n"] == 1
    assert seen == ["shared"] * 10
